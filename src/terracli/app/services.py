"""Wire the adapters to the application components for one command."""

from __future__ import annotations

from typing import Callable

import requests

from terracli.adapters.gcp import GcpAccessChecker
from terracli.adapters.oauth import OAuthTokenRefresher
from terracli.adapters.sam import SamClient
from terracli.adapters.workspace_manager import WorkspaceManagerClient
from terracli.app.auth.service import AuthOperations, prompt_for_credential
from terracli.app.context_store import ContextStore
from terracli.app.credentials import CredentialStore
from terracli.app.environment import CommandEnvironmentBuilder
from terracli.app.groups import GroupOperations
from terracli.app.resources import ResourceRegistry
from terracli.app.retrying import RetryingClient
from terracli.app.runner import CommandRunner, ToolLauncher, runner_for
from terracli.app.workspace.service import WorkspaceOperations
from terracli.domain.context import PersistedContext
from terracli.domain.errors import UserActionableError
from terracli.domain.identity import Identity
from terracli.domain.workspace import Server, Workspace
from terracli.ports.cloud import ResourceAccessChecker
from terracli.ports.identity_service import IdentityService
from terracli.ports.workspace_service import WorkspaceService
from terracli.settings import DEFAULT_SERVER, CliConfig, RuntimeSettings


class ServiceFactory:
    """Builds the per-command object graph.

    Remote clients are bound to the user token of one identity, so most
    builders take the resolved context and identity.
    """

    def __init__(self, settings: RuntimeSettings, config: CliConfig) -> None:
        self.settings = settings
        self.config = config

    def _session(self) -> requests.Session:
        return requests.Session()

    def retrying(self) -> RetryingClient:
        return RetryingClient.from_config(self.config, settings=self.settings)

    def contexts(self) -> ContextStore:
        default = DEFAULT_SERVER if DEFAULT_SERVER in self.config.servers else sorted(self.config.servers)[0]
        return ContextStore(self.settings, default_server=default)

    def server(self, context: PersistedContext) -> Server:
        return self.config.server(context.server)

    def identity_service(self, context: PersistedContext, token_provider: Callable[[], str]) -> IdentityService:
        return SamClient(self.server(context).identity_uri, self.retrying(), token_provider, session=self._session())

    def credentials(self, context: PersistedContext) -> CredentialStore:
        interactive = prompt_for_credential if self.config.browser == "auto" else None
        return CredentialStore(
            self.settings,
            OAuthTokenRefresher(self.retrying(), session=self._session()),
            lambda provider: self.identity_service(context, provider),
            interactive_login=interactive,
        )

    def workspace_service(
        self,
        context: PersistedContext,
        credentials: CredentialStore,
        identity: Identity,
    ) -> WorkspaceService:
        return WorkspaceManagerClient(
            self.server(context).workspace_uri,
            self.retrying(),
            lambda: credentials.get_user_token(identity).value,
            session=self._session(),
        )

    def access_checker(self) -> ResourceAccessChecker:
        return GcpAccessChecker(self.retrying(), session=self._session())

    def registry(
        self,
        workspace_service: WorkspaceService,
        credentials: CredentialStore,
        identity: Identity,
        workspace: Workspace | None = None,
        *,
        scoped: bool = False,
    ) -> ResourceRegistry:
        """``scoped`` marks a per-command workspace override whose credentials must not outlive the call."""

        token_provider = None
        if workspace is not None and workspace.platform_project_id:
            # access is probed as the workspace service identity, which sees what tools see
            def token_provider() -> str:
                try:
                    return credentials.get_impersonated_token(identity, workspace).value
                finally:
                    if scoped:
                        credentials.invalidate(identity, workspace)

        elif workspace is not None:

            def token_provider() -> str:
                raise UserActionableError(
                    f"Workspace '{workspace.user_facing_id}' has no cloud project; "
                    "access checks need its service identity."
                )

        return ResourceRegistry(
            workspace_service,
            self.access_checker(),
            resource_limit=self.config.resource_limit,
            token_provider=token_provider,
            settings=self.settings,
        )

    def groups(self, credentials: CredentialStore, identity: Identity) -> GroupOperations:
        return GroupOperations(credentials.identity_service(identity), self.settings)

    def runner(self) -> CommandRunner:
        return runner_for(self.config)

    def auth(self, contexts: ContextStore, credentials: CredentialStore) -> AuthOperations:
        return AuthOperations(contexts, credentials)

    def workspaces(
        self,
        contexts: ContextStore,
        credentials: CredentialStore,
        workspace_service: WorkspaceService,
        registry: ResourceRegistry,
        identity: Identity,
    ) -> WorkspaceOperations:
        return WorkspaceOperations(
            contexts,
            credentials,
            workspace_service,
            registry,
            self.retrying(),
            identity,
            settings=self.settings,
        )

    def launcher(self, registry: ResourceRegistry, credentials: CredentialStore) -> ToolLauncher:
        return ToolLauncher(
            CommandEnvironmentBuilder(registry, credentials),
            self.runner(),
            self.settings,
            credentials=credentials,
        )


__all__ = ["ServiceFactory"]
