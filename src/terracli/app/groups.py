"""Identity-service groups the logged-in user belongs to."""

from __future__ import annotations

from typing import List

from terracli.ports.identity_service import GroupMembership, IdentityService
from terracli.settings import RuntimeSettings
from terracli.utils.telemetry import record_structured_event


class GroupOperations:
    def __init__(self, identity_service: IdentityService, settings: RuntimeSettings | None = None) -> None:
        self._service = identity_service
        self._settings = settings

    def list(self) -> List[GroupMembership]:
        return sorted(self._service.list_groups(), key=lambda group: group.name)

    def delete(self, name: str) -> GroupMembership:
        """Delete ``name`` and return what it was; an unknown group raises ``NotFoundError``."""

        email = self._service.get_group_email(name)
        roles = [group.role for group in self._service.list_groups() if group.name == name]
        self._service.delete_group(name)
        if self._settings is not None:
            record_structured_event(
                self._settings,
                "group.deleted",
                payload={"group": name, "email": email},
                component="groups",
            )
        return GroupMembership(name=name, email=email, role=roles[0] if roles else "")


__all__ = ["GroupOperations"]
