"""Login, logout and status for the persisted context's user."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict

from terracli.app.context_store import ContextStore
from terracli.app.credentials import CredentialStore
from terracli.domain.context import PersistedContext
from terracli.domain.errors import AuthExpiredError, ValidationError
from terracli.domain.identity import Identity, UserCredential


def load_credential_file(path: Path) -> UserCredential:
    """Read an ``authorized_user`` JSON file (as written by ``gcloud auth application-default login``)."""

    path = path.expanduser()
    if not path.exists():
        raise ValidationError(f"Credential file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Credential file {path} is not valid JSON") from exc
    if not isinstance(data, dict) or data.get("type") != "authorized_user":
        raise ValidationError(f"Credential file {path} is not an authorized_user credential")
    missing = [key for key in ("client_id", "client_secret", "refresh_token") if not data.get(key)]
    if missing:
        raise ValidationError(f"Credential file {path} is missing: {', '.join(missing)}")
    return UserCredential(
        client_id=data["client_id"],
        client_secret=data["client_secret"],
        refresh_token=data["refresh_token"],
    )


def prompt_for_credential(
    reader: Callable[[str], str] = input,
) -> UserCredential:
    """Interactive re-login used when a refresh token has been revoked."""

    if not sys.stdin.isatty():
        raise AuthExpiredError("Login credentials expired and no terminal is available. Run 'terra auth login'.")
    answer = reader("Login expired. Path to an authorized_user credential file: ").strip()
    if not answer:
        raise AuthExpiredError("Login cancelled.")
    return load_credential_file(Path(answer))


def current_identity(context: PersistedContext, credentials: CredentialStore) -> Identity:
    if not context.identity_key:
        raise AuthExpiredError("Not logged in. Run 'terra auth login'.")
    identity = credentials.load_identity(context.identity_key)
    if identity is None:
        raise AuthExpiredError("Login state is missing. Run 'terra auth login'.")
    return identity


class AuthOperations:
    def __init__(self, contexts: ContextStore, credentials: CredentialStore) -> None:
        self._contexts = contexts
        self._credentials = credentials

    def login(self, credential_file: Path) -> Identity:
        credential = load_credential_file(credential_file)
        context = self._contexts.load()
        identity = self._credentials.login(credential)
        if context.identity_key and context.identity_key != identity.local_key:
            previous = self._credentials.load_identity(context.identity_key)
            if previous is not None:
                self._credentials.invalidate(previous)
        self._contexts.update(identity_key=identity.local_key)
        return identity

    def logout(self) -> bool:
        context = self._contexts.load()
        if not context.identity_key:
            return False
        identity = self._credentials.load_identity(context.identity_key)
        if identity is not None:
            self._credentials.invalidate(identity)
        self._contexts.update(identity_key=None)
        return True

    def status(self) -> Dict[str, Any]:
        context = self._contexts.load()
        identity = self._credentials.load_identity(context.identity_key) if context.identity_key else None
        return {
            "server": context.server,
            "logged_in": identity is not None,
            "email": identity.email if identity else None,
            "proxy_group_email": identity.proxy_group_email if identity else None,
            "workspace": context.workspace.user_facing_id if context.workspace else None,
        }


__all__ = ["AuthOperations", "current_identity", "load_credential_file", "prompt_for_credential"]
