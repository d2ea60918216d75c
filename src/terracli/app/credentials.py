"""Per-user and per-(user, workspace) credential storage with lazy refresh."""

from __future__ import annotations

import json
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict

from terracli.domain.errors import AuthExpiredError, SystemInternalError
from terracli.domain.identity import AccessToken, Identity, ImpersonatedCredential, UserCredential
from terracli.domain.workspace import Workspace
from terracli.ports.auth import TokenRefresher
from terracli.ports.identity_service import IdentityService
from terracli.settings import RuntimeSettings
from terracli.utils.fs import atomic_write_json
from terracli.utils.telemetry import record_structured_event

SECRET_FILE_MODE = 0o600
USER_FILENAME = "user.json"
IDENTITY_FILENAME = "identity.json"
IMPERSONATED_DIRNAME = "impersonated"

IdentityServiceFactory = Callable[[Callable[[], str]], IdentityService]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _read_json(path: Path) -> Dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemInternalError(f"Credential file {path} is corrupt; run 'terra auth logout' and log in again") from exc
    if not isinstance(data, dict):
        raise SystemInternalError(f"Credential file {path} does not contain an object")
    return data


class CredentialStore:
    """Owns the end-user credential and the workspace-scoped service identity keys.

    Layout under ``credentials/<identity key>/``: ``identity.json``,
    ``user.json`` (refresh material plus the cached access token) and
    ``impersonated/<workspace id>.json`` (service identity key file handed to
    tools) next to ``<workspace id>.token.json`` (its cached access token).
    Expiry is checked lazily on every use.
    """

    def __init__(
        self,
        settings: RuntimeSettings,
        refresher: TokenRefresher,
        identity_service_factory: IdentityServiceFactory,
        *,
        clock: Callable[[], datetime] = _utcnow,
        interactive_login: Callable[[], UserCredential] | None = None,
    ) -> None:
        self._settings = settings
        self._refresher = refresher
        self._identity_service_factory = identity_service_factory
        self._clock = clock
        self._interactive_login = interactive_login

    # paths

    def _identity_dir(self, key: str) -> Path:
        return self._settings.credentials_dir / key

    def _impersonated_dir(self, identity: Identity) -> Path:
        return self._identity_dir(identity.local_key) / IMPERSONATED_DIRNAME

    def impersonated_key_path(self, identity: Identity, workspace: Workspace) -> Path:
        return self._impersonated_dir(identity) / f"{workspace.id}.json"

    def _impersonated_token_path(self, identity: Identity, workspace: Workspace) -> Path:
        return self._impersonated_dir(identity) / f"{workspace.id}.token.json"

    def _write_secret(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        atomic_write_json(path, payload, mode=SECRET_FILE_MODE)

    # identities

    def load_identity(self, key: str) -> Identity | None:
        data = _read_json(self._identity_dir(key) / IDENTITY_FILENAME)
        return Identity.from_dict(data) if data else None

    def save_identity(self, identity: Identity) -> None:
        self._write_secret(self._identity_dir(identity.local_key) / IDENTITY_FILENAME, identity.to_dict())

    def login(self, credential: UserCredential) -> Identity:
        """Register a fresh identity from authorized-user material.

        The user is looked up in the identity service and registered there on
        first use.
        """

        token = self._refresher.refresh(credential)
        service = self._identity_service_factory(lambda: token.value)
        info = service.get_user_info_or_register()
        identity = Identity(
            local_key=uuid.uuid4().hex,
            subject_id=info.subject_id,
            email=info.email,
            proxy_group_email=service.get_proxy_group_email(info.email),
        )
        self._save_user_credential(identity, credential.with_token(token))
        self.save_identity(identity)
        self._record("auth.login", {"email": identity.email, "subject_id": identity.subject_id})
        return identity

    # end-user token

    def _load_user_credential(self, identity: Identity) -> UserCredential:
        data = _read_json(self._identity_dir(identity.local_key) / USER_FILENAME)
        if data is None:
            raise AuthExpiredError("Not logged in. Run 'terra auth login'.")
        return UserCredential.from_dict(data)

    def _save_user_credential(self, identity: Identity, credential: UserCredential) -> None:
        self._write_secret(self._identity_dir(identity.local_key) / USER_FILENAME, credential.to_dict())

    def get_user_token(self, identity: Identity) -> AccessToken:
        credential = self._load_user_credential(identity)
        if credential.token is not None and not credential.token.expired(self._clock()):
            return credential.token
        try:
            token = self._refresher.refresh(credential)
        except AuthExpiredError:
            if self._interactive_login is None:
                raise
            self._record("auth.interactive_login", {"email": identity.email}, level="warn")
            credential = self._interactive_login()
            token = self._refresher.refresh(credential)
        self._save_user_credential(identity, credential.with_token(token))
        self._record("auth.token_refreshed", {"email": identity.email})
        return token

    def identity_service(self, identity: Identity) -> IdentityService:
        return self._identity_service_factory(lambda: self.get_user_token(identity).value)

    # impersonated identity

    def _load_impersonated(self, identity: Identity, workspace: Workspace) -> ImpersonatedCredential | None:
        key_path = self.impersonated_key_path(identity, workspace)
        cached = _read_json(self._impersonated_token_path(identity, workspace))
        if cached is None or not key_path.exists():
            return None
        return ImpersonatedCredential(
            workspace_id=workspace.id,
            email=cached.get("email", ""),
            token=AccessToken.from_dict(cached["token"]),
            key_material=_read_json(key_path) or {},
        )

    def _fetch_impersonated(self, identity: Identity, workspace: Workspace) -> ImpersonatedCredential:
        credential = self.identity_service(identity).get_impersonated_credential(workspace)
        self._write_secret(self.impersonated_key_path(identity, workspace), credential.key_material)
        self._write_secret(
            self._impersonated_token_path(identity, workspace),
            {"workspace_id": workspace.id, "email": credential.email, "token": credential.token.to_dict()},
        )
        self._record("auth.impersonated_fetched", {"workspace": workspace.id, "email": credential.email})
        return credential

    def get_impersonated_credential(self, identity: Identity, workspace: Workspace) -> ImpersonatedCredential:
        cached = self._load_impersonated(identity, workspace)
        if cached is not None and not cached.token.expired(self._clock()):
            return cached
        return self._fetch_impersonated(identity, workspace)

    def get_impersonated_token(self, identity: Identity, workspace: Workspace) -> AccessToken:
        return self.get_impersonated_credential(identity, workspace).token

    def impersonated_credential_file(self, identity: Identity, workspace: Workspace) -> Path:
        """Path of the service identity key file for tools, fetched if missing."""

        self.get_impersonated_credential(identity, workspace)
        return self.impersonated_key_path(identity, workspace)

    # invalidation

    def invalidate(self, identity: Identity, workspace: Workspace | None = None) -> None:
        """Drop the workspace's impersonated credential, or everything for the identity."""

        if workspace is not None:
            for path in (
                self.impersonated_key_path(identity, workspace),
                self._impersonated_token_path(identity, workspace),
            ):
                path.unlink(missing_ok=True)
            self._record("auth.impersonated_invalidated", {"workspace": workspace.id})
            return
        shutil.rmtree(self._identity_dir(identity.local_key), ignore_errors=True)
        self._record("auth.logout", {"email": identity.email})

    def _record(self, event: str, payload: Dict[str, Any], level: str = "info") -> None:
        record_structured_event(self._settings, event, payload=payload, level=level, component="credentials")


__all__ = ["CredentialStore", "IdentityServiceFactory"]
