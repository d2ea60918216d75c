"""Typed view over a workspace's resources, polymorphic over stewardship."""

from __future__ import annotations

from typing import Callable, Dict, List

from terracli.domain.errors import (
    NotFoundError,
    ResourceLimitExceededError,
    SystemInternalError,
    UserActionableError,
    ValidationError,
    WrongStewardshipTypeError,
)
from terracli.domain.resource import (
    CONTROLLED_TYPES,
    REFERENCED_TYPES,
    CloningPolicy,
    Resource,
    ResourceType,
    StewardshipType,
    is_valid_resource_name,
    resolve,
)
from terracli.domain.workspace import Workspace
from terracli.ports.cloud import ResourceAccessChecker
from terracli.ports.workspace_service import WorkspaceService
from terracli.settings import RuntimeSettings
from terracli.utils.telemetry import record_structured_event

PAGE_SIZE = 100

# attributes the caller must supply to provision a controlled resource; the
# workspace service fills in the rest (project, generated bucket name)
CREATION_ATTRIBUTES: Dict[ResourceType, tuple[str, ...]] = {
    ResourceType.GCS_BUCKET: (),
    ResourceType.BQ_DATASET: ("dataset_id",),
    ResourceType.AI_NOTEBOOK: ("instance_id",),
}

REFERENCED_CLONING = frozenset({CloningPolicy.COPY_NOTHING, CloningPolicy.COPY_REFERENCE, CloningPolicy.REFERENCE})
CONTROLLED_CLONING = frozenset({CloningPolicy.COPY_NOTHING, CloningPolicy.COPY_REFERENCE, CloningPolicy.COPY_RESOURCE})


class ResourceRegistry:
    def __init__(
        self,
        workspace_service: WorkspaceService,
        access_checker: ResourceAccessChecker,
        *,
        resource_limit: int = 1000,
        token_provider: Callable[[], str] | None = None,
        settings: RuntimeSettings | None = None,
    ) -> None:
        self._service = workspace_service
        self._checker = access_checker
        self._limit = resource_limit
        self._token_provider = token_provider
        self._settings = settings

    def list(self, workspace: Workspace) -> List[Resource]:
        """All resources in ``workspace``; fails rather than truncating past the limit."""

        resources: List[Resource] = []
        offset = 0
        while True:
            page = self._service.enumerate_resources(workspace.id, offset, PAGE_SIZE)
            resources.extend(page)
            if len(resources) > self._limit:
                raise ResourceLimitExceededError(
                    f"Total number of resources ({len(resources)}) exceeds the CLI limit ({self._limit})."
                )
            if len(page) < PAGE_SIZE:
                return resources
            offset += PAGE_SIZE

    def describe(self, workspace: Workspace, name: str) -> Resource:
        for resource in self.list(workspace):
            if resource.name == name:
                return resource
        raise NotFoundError(f"Resource not found: {name}")

    def resolve(self, resource: Resource) -> str:
        return resolve(resource)

    def check_access(self, resource: Resource) -> bool:
        if resource.is_controlled:
            raise WrongStewardshipTypeError("Checking access is intended for REFERENCED resources only.")
        if resource.resource_type not in REFERENCED_TYPES:
            raise UserActionableError(f"Checking access is not supported for {resource.resource_type.value}.")
        if self._token_provider is None:
            raise SystemInternalError("No credentials available for access checks")
        return self._checker.check_access(resource, self._token_provider())

    def delete(self, workspace: Workspace, resource: Resource) -> Resource:
        """Delete by name; the current remote record decides the stewardship path."""

        current = self.describe(workspace, resource.name)
        if current.is_controlled:
            self._service.delete_controlled_resource(workspace.id, current)
        else:
            self._service.delete_referenced_resource(workspace.id, current)
        self._record("resource.deleted", {"workspace": workspace.id, "name": current.name})
        return current

    def add_referenced(self, workspace: Workspace, resource: Resource) -> Resource:
        resource = resource.evolve(stewardship=StewardshipType.REFERENCED)
        if resource.resource_type not in REFERENCED_TYPES:
            raise UserActionableError(f"{resource.resource_type.value} resources cannot be added by reference.")
        if resource.cloning not in REFERENCED_CLONING:
            raise ValidationError(
                f"Referenced resources cannot use cloning policy {resource.cloning.value}."
            )
        resource.validate()
        self._ensure_unique(workspace, resource.name)
        created = self._service.create_referenced_resource(workspace.id, resource)
        self._record("resource.referenced", {"workspace": workspace.id, "name": created.name})
        return created

    def create_controlled(self, workspace: Workspace, resource: Resource) -> Resource:
        resource = resource.evolve(stewardship=StewardshipType.CONTROLLED)
        if resource.resource_type not in CONTROLLED_TYPES:
            raise UserActionableError(f"{resource.resource_type.value} resources cannot be workspace-controlled.")
        if resource.cloning not in CONTROLLED_CLONING:
            raise ValidationError(
                f"Controlled resources cannot use cloning policy {resource.cloning.value}."
            )
        if not is_valid_resource_name(resource.name):
            raise ValidationError("Resource name can contain only alphanumeric and underscore characters.")
        missing = [key for key in CREATION_ATTRIBUTES[resource.resource_type] if not resource.attributes.get(key)]
        if missing:
            raise ValidationError(f"Missing attributes for {resource.resource_type.value}: {', '.join(missing)}")
        self._ensure_unique(workspace, resource.name)
        created = self._service.create_controlled_resource(workspace.id, resource)
        self._record("resource.controlled", {"workspace": workspace.id, "name": created.name})
        return created

    def _ensure_unique(self, workspace: Workspace, name: str) -> None:
        if any(existing.name == name for existing in self.list(workspace)):
            raise ValidationError(f"A resource named '{name}' already exists in this workspace.")

    def _record(self, event: str, payload: dict) -> None:
        if self._settings is not None:
            record_structured_event(self._settings, event, payload=payload, component="resources")


__all__ = ["CREATION_ATTRIBUTES", "PAGE_SIZE", "ResourceRegistry"]
