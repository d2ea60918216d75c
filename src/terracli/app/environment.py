"""Environment injected into a launched tool process."""

from __future__ import annotations

from typing import Dict, Mapping

from terracli.app.credentials import CredentialStore
from terracli.app.resources import ResourceRegistry
from terracli.domain.errors import EnvironmentCollisionError
from terracli.domain.identity import Identity
from terracli.domain.workspace import Workspace

CREDENTIALS_VAR = "GOOGLE_APPLICATION_CREDENTIALS"
PROJECT_VAR = "GOOGLE_CLOUD_PROJECT"


class CommandEnvironmentBuilder:
    def __init__(self, registry: ResourceRegistry, credentials: CredentialStore) -> None:
        self._registry = registry
        self._credentials = credentials

    def build(
        self,
        workspace: Workspace,
        identity: Identity,
        extra_vars: Mapping[str, str] | None = None,
    ) -> Dict[str, str]:
        """Caller variables plus one ``TERRA_<NAME>`` per resource and the platform variables.

        Every generated key is checked against ``extra_vars`` before anything
        is fetched for the credential file, so a collision never leaves a
        half-built environment behind.
        """

        extra = dict(extra_vars or {})
        generated: Dict[str, str] = {}
        collisions = set()
        for resource in self._registry.list(workspace):
            key = resource.env_var
            if key in generated:
                collisions.add(key)
            generated[key] = resource.resolve()

        platform_keys = []
        if workspace.platform_project_id:
            generated[PROJECT_VAR] = workspace.platform_project_id
            platform_keys.append(CREDENTIALS_VAR)

        collisions.update(key for key in (*generated, *platform_keys) if key in extra)
        if collisions:
            raise EnvironmentCollisionError(sorted(collisions))

        if workspace.platform_project_id:
            key_file = self._credentials.impersonated_credential_file(identity, workspace)
            generated[CREDENTIALS_VAR] = str(key_file)

        extra.update(generated)
        return extra


__all__ = ["CREDENTIALS_VAR", "CommandEnvironmentBuilder", "PROJECT_VAR"]
