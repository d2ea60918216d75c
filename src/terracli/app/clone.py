"""Duplicate a workspace's resource graph into a new workspace."""

from __future__ import annotations

from typing import Callable, Dict

from terracli.app.resources import ResourceRegistry
from terracli.domain.clone import CloneOutcome, CloneResult, ClonedWorkspace
from terracli.domain.errors import TerraCliError, UserActionableError
from terracli.domain.resource import CloningPolicy, Resource, ResourceType
from terracli.domain.workspace import Workspace
from terracli.ports.workspace_service import WorkspaceService
from terracli.settings import RuntimeSettings
from terracli.utils.telemetry import record_structured_event

# attributes assigned by the destination workspace when a backing object is copied
PLATFORM_ASSIGNED: Dict[ResourceType, tuple[str, ...]] = {
    ResourceType.GCS_BUCKET: ("bucket_name",),
    ResourceType.BQ_DATASET: ("project_id",),
    ResourceType.AI_NOTEBOOK: ("project_id",),
}


class CloneOrchestrator:
    """Creates the destination workspace, then clones each resource independently.

    Only the workspace creation step is fatal. Per-resource failures are
    recorded as FAILED outcomes and never abort the remaining resources.
    """

    def __init__(
        self,
        workspace_service: WorkspaceService,
        registry: ResourceRegistry,
        settings: RuntimeSettings | None = None,
    ) -> None:
        self._service = workspace_service
        self._registry = registry
        self._settings = settings
        self._handlers: Dict[CloningPolicy, Callable[[Workspace, Resource], CloneOutcome]] = {
            CloningPolicy.COPY_NOTHING: self._skip,
            CloningPolicy.COPY_REFERENCE: self._copy_reference,
            CloningPolicy.REFERENCE: self._copy_reference,
            CloningPolicy.COPY_RESOURCE: self._copy_resource,
        }

    def duplicate(
        self,
        source: Workspace,
        user_facing_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> ClonedWorkspace:
        resources = self._registry.list(source)
        destination = self._service.create_workspace(
            user_facing_id,
            source.cloud_platform,
            name=name if name is not None else source.name,
            description=description if description is not None else source.description,
            properties=dict(source.properties),
        )
        outcomes = []
        for resource in resources:
            outcome = self._clone_one(destination, resource)
            outcomes.append(outcome)
            self._record(source, destination, outcome)
        return ClonedWorkspace(source_workspace=source, destination_workspace=destination, outcomes=outcomes)

    def _clone_one(self, destination: Workspace, resource: Resource) -> CloneOutcome:
        handler = self._handlers[resource.cloning]
        try:
            return handler(destination, resource)
        except TerraCliError as exc:
            return CloneOutcome(source=resource, result=CloneResult.FAILED, message=str(exc))

    def _skip(self, destination: Workspace, resource: Resource) -> CloneOutcome:
        return CloneOutcome(source=resource, result=CloneResult.SKIPPED)

    def _copy_reference(self, destination: Workspace, resource: Resource) -> CloneOutcome:
        # a controlled source is referenced at its backing object, not re-provisioned
        cloning = CloningPolicy.COPY_REFERENCE if resource.is_controlled else resource.cloning
        reference = resource.evolve(id="", cloning=cloning)
        created = self._registry.add_referenced(destination, reference)
        return CloneOutcome(source=resource, result=CloneResult.SUCCEEDED, destination=created)

    def _copy_resource(self, destination: Workspace, resource: Resource) -> CloneOutcome:
        if not resource.is_controlled:
            raise UserActionableError(
                f"Resource '{resource.name}' is referenced; there is no backing object to copy."
            )
        dropped = PLATFORM_ASSIGNED.get(resource.resource_type, ())
        attributes = {key: value for key, value in resource.attributes.items() if key not in dropped}
        created = self._registry.create_controlled(destination, resource.evolve(id="", attributes=attributes))
        return CloneOutcome(source=resource, result=CloneResult.SUCCEEDED, destination=created)

    def _record(self, source: Workspace, destination: Workspace, outcome: CloneOutcome) -> None:
        if self._settings is None:
            return
        record_structured_event(
            self._settings,
            "clone.resource",
            payload={
                "source_workspace": source.id,
                "destination_workspace": destination.id,
                "resource": outcome.source.name,
                "message": outcome.message,
            },
            level="warn" if outcome.result is CloneResult.FAILED else "info",
            status=outcome.result.value,
            component="clone",
        )


__all__ = ["CloneOrchestrator", "PLATFORM_ASSIGNED"]
