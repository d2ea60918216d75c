"""Port for the identity service (user registry, groups, service identities)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from terracli.domain.identity import ImpersonatedCredential
from terracli.domain.workspace import Workspace


@dataclass(frozen=True)
class UserInfo:
    subject_id: str
    email: str
    enabled: bool = True


@dataclass(frozen=True)
class GroupMembership:
    """A group the caller belongs to, with the caller's role in it."""

    name: str
    email: str
    role: str

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email, "role": self.role}


class IdentityService(ABC):
    """Calls are authenticated with the current end-user token."""

    @abstractmethod
    def get_user_info(self) -> UserInfo:
        """Raises ``NotFoundError`` if the caller is not registered."""

    @abstractmethod
    def register_user(self) -> UserInfo:
        ...

    @abstractmethod
    def get_user_info_or_register(self) -> UserInfo:
        """Look the caller up, registering them once if they are unknown."""

    @abstractmethod
    def invite_user(self, email: str) -> None:
        ...

    @abstractmethod
    def get_proxy_group_email(self, email: str) -> str:
        ...

    @abstractmethod
    def get_impersonated_credential(self, workspace: Workspace) -> ImpersonatedCredential:
        """Fetch the caller's workspace-scoped service identity credential."""

    @abstractmethod
    def list_groups(self) -> List[GroupMembership]:
        """Groups the caller is a member or admin of."""

    @abstractmethod
    def get_group_email(self, name: str) -> str:
        ...

    @abstractmethod
    def delete_group(self, name: str) -> None:
        """Only group admins may delete; others get ``AccessDeniedError``."""
