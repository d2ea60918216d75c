"""Port for the workspace-management service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from terracli.domain.resource import Resource
from terracli.domain.workspace import CloudPlatform, Workspace


class WorkspaceService(ABC):
    """Remote object store keyed by workspace UUID and resource name.

    Implementations raise the taxonomy errors from ``terracli.domain.errors``.
    """

    @abstractmethod
    def create_workspace(
        self,
        user_facing_id: str,
        cloud_platform: CloudPlatform,
        *,
        name: str | None = None,
        description: str | None = None,
        properties: Dict[str, str] | None = None,
    ) -> Workspace:
        ...

    @abstractmethod
    def get_workspace(self, workspace_id: str) -> Workspace:
        ...

    @abstractmethod
    def get_workspace_by_user_facing_id(self, user_facing_id: str) -> Workspace:
        ...

    @abstractmethod
    def list_workspaces(self, offset: int, limit: int) -> List[Workspace]:
        ...

    @abstractmethod
    def update_workspace(
        self,
        workspace_id: str,
        *,
        user_facing_id: str | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> Workspace:
        ...

    @abstractmethod
    def delete_workspace(self, workspace_id: str) -> None:
        ...

    @abstractmethod
    def enumerate_resources(self, workspace_id: str, offset: int, limit: int) -> List[Resource]:
        ...

    @abstractmethod
    def create_controlled_resource(self, workspace_id: str, resource: Resource) -> Resource:
        """Provision the backing cloud object and record it in the workspace."""

    @abstractmethod
    def delete_controlled_resource(self, workspace_id: str, resource: Resource) -> None:
        """Deprovision the backing cloud object and drop the resource."""

    @abstractmethod
    def create_referenced_resource(self, workspace_id: str, resource: Resource) -> Resource:
        ...

    @abstractmethod
    def delete_referenced_resource(self, workspace_id: str, resource: Resource) -> None:
        ...

    @abstractmethod
    def list_roles(self, workspace_id: str) -> Dict[str, List[str]]:
        ...

    @abstractmethod
    def grant_role(self, workspace_id: str, email: str, role: str) -> None:
        ...

    @abstractmethod
    def remove_role(self, workspace_id: str, email: str, role: str) -> None:
        ...
