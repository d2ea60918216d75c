"""Workspace commands that route every context change through ContextStore."""

from __future__ import annotations

import re
from typing import Dict, List

from terracli.app.clone import CloneOrchestrator
from terracli.app.context_store import ContextStore
from terracli.app.credentials import CredentialStore
from terracli.app.resources import ResourceRegistry
from terracli.app.retrying import RetryingClient
from terracli.domain.clone import ClonedWorkspace
from terracli.domain.context import PersistedContext
from terracli.domain.errors import UserActionableError, ValidationError
from terracli.domain.identity import Identity
from terracli.domain.workspace import CloudPlatform, Workspace, is_workspace_uuid
from terracli.ports.workspace_service import WorkspaceService
from terracli.settings import RuntimeSettings
from terracli.utils.telemetry import record_structured_event

ROLES = ("READER", "WRITER", "APPLICATION", "OWNER")

_USER_FACING_ID_RE = re.compile(r"^[a-z0-9][-_a-z0-9]{2,62}$")


def validate_user_facing_id(value: str) -> str:
    if not _USER_FACING_ID_RE.match(value or ""):
        raise ValidationError(
            "Workspace id must be 3-63 characters of lowercase letters, numbers, dashes or underscores, "
            "starting with a letter or number."
        )
    return value


def fetch_workspace(service: WorkspaceService, id_or_user_facing_id: str) -> Workspace:
    if is_workspace_uuid(id_or_user_facing_id):
        return service.get_workspace(id_or_user_facing_id)
    return service.get_workspace_by_user_facing_id(id_or_user_facing_id)


def resolve_for_command(
    contexts: ContextStore,
    service: WorkspaceService,
    context: PersistedContext,
    override: str | None = None,
) -> PersistedContext:
    """The context a single command runs against; an override is never persisted."""

    if not override:
        return context
    return contexts.with_override(context, fetch_workspace(service, override))


def require_workspace(context: PersistedContext) -> Workspace:
    if context.workspace is None:
        raise UserActionableError("No workspace set. Run 'terra workspace set --id=<id>' first.")
    return context.workspace


class WorkspaceOperations:
    def __init__(
        self,
        contexts: ContextStore,
        credentials: CredentialStore,
        workspace_service: WorkspaceService,
        registry: ResourceRegistry,
        retrying: RetryingClient,
        identity: Identity,
        settings: RuntimeSettings | None = None,
    ) -> None:
        self._contexts = contexts
        self._credentials = credentials
        self._service = workspace_service
        self._registry = registry
        self._retrying = retrying
        self._identity = identity
        self._settings = settings

    def fetch(self, id_or_user_facing_id: str) -> Workspace:
        return fetch_workspace(self._service, id_or_user_facing_id)

    def _make_current(self, workspace: Workspace) -> None:
        previous = self._contexts.load().workspace
        if previous is not None and previous.id != workspace.id:
            self._credentials.invalidate(self._identity, previous)
        self._contexts.update(workspace=workspace)
        if workspace.platform_project_id:
            self._credentials.get_impersonated_credential(self._identity, workspace)

    def create(
        self,
        user_facing_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        properties: Dict[str, str] | None = None,
        cloud_platform: CloudPlatform = CloudPlatform.GCP,
    ) -> Workspace:
        workspace = self._service.create_workspace(
            validate_user_facing_id(user_facing_id),
            cloud_platform,
            name=name,
            description=description,
            properties=properties,
        )
        self._record("workspace.create", workspace)
        self._make_current(workspace)
        return workspace

    def set(self, id_or_user_facing_id: str) -> Workspace:
        workspace = self.fetch(id_or_user_facing_id)
        self._make_current(workspace)
        self._record("workspace.set", workspace)
        return workspace

    def describe(self, workspace: Workspace) -> Workspace:
        return self._service.get_workspace(workspace.id)

    def list(self, offset: int = 0, limit: int = 30) -> List[Workspace]:
        if offset < 0 or limit <= 0:
            raise ValidationError("offset must be >= 0 and limit must be > 0")
        return self._service.list_workspaces(offset, limit)

    def update(
        self,
        workspace: Workspace,
        *,
        user_facing_id: str | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> Workspace:
        if user_facing_id is None and name is None and description is None:
            raise ValidationError("Specify at least one property to update.")
        updated = self._service.update_workspace(
            workspace.id,
            user_facing_id=validate_user_facing_id(user_facing_id) if user_facing_id is not None else None,
            name=name,
            description=description,
        )
        current = self._contexts.load().workspace
        if current is not None and current.id == updated.id:
            self._contexts.update(workspace=updated)
        return updated

    def delete(self, workspace: Workspace) -> None:
        self._service.delete_workspace(workspace.id)
        self._credentials.invalidate(self._identity, workspace)
        current = self._contexts.load().workspace
        if current is not None and current.id == workspace.id:
            self._contexts.update(workspace=None)
        self._record("workspace.delete", workspace)

    def add_user(self, workspace: Workspace, email: str, role: str) -> None:
        """Grant ``role``, inviting ``email`` to the identity service if it is unknown there."""

        role = _check_role(role)
        result = self._retrying.call_with_recovery(
            lambda: self._service.grant_role(workspace.id, email, role),
            lambda error: isinstance(error, ValidationError),
            lambda: self._credentials.identity_service(self._identity).invite_user(email),
        )
        result.unwrap()

    def remove_user(self, workspace: Workspace, email: str, role: str) -> None:
        self._service.remove_role(workspace.id, email, _check_role(role))

    def list_users(self, workspace: Workspace) -> Dict[str, List[str]]:
        users: Dict[str, List[str]] = {}
        for role, members in self._service.list_roles(workspace.id).items():
            for member in members:
                users.setdefault(member, []).append(role)
        return {email: sorted(roles) for email, roles in sorted(users.items())}

    def duplicate(
        self,
        workspace: Workspace,
        user_facing_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> ClonedWorkspace:
        orchestrator = CloneOrchestrator(self._service, self._registry, self._settings)
        return orchestrator.duplicate(workspace, validate_user_facing_id(user_facing_id), name, description)

    def _record(self, event: str, workspace: Workspace) -> None:
        if self._settings is not None:
            record_structured_event(
                self._settings,
                event,
                payload={"workspace": workspace.id, "user_facing_id": workspace.user_facing_id},
                component="workspace",
            )


def _check_role(role: str) -> str:
    normalised = role.upper()
    if normalised not in ROLES:
        raise ValidationError(f"Unknown role '{role}'. Choose from: {', '.join(ROLES)}")
    return normalised


__all__ = [
    "ROLES",
    "WorkspaceOperations",
    "fetch_workspace",
    "require_workspace",
    "resolve_for_command",
    "validate_user_facing_id",
]
