"""Value objects for end-user identities and their credentials."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        # at-or-before counts as expired
        return self.expires_at <= now

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "expires_at": self.expires_at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessToken":
        return cls(value=data["value"], expires_at=_parse_ts(data["expires_at"]))


@dataclass(frozen=True)
class UserCredential:
    """Authorized-user material used for the OAuth refresh-token grant."""

    client_id: str
    client_secret: str
    refresh_token: str
    token: AccessToken | None = None

    def with_token(self, token: AccessToken) -> "UserCredential":
        return replace(self, token=token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "authorized_user",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "token": self.token.to_dict() if self.token else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserCredential":
        token = data.get("token")
        return cls(
            client_id=data["client_id"],
            client_secret=data["client_secret"],
            refresh_token=data["refresh_token"],
            token=AccessToken.from_dict(token) if token else None,
        )


@dataclass(frozen=True)
class ImpersonatedCredential:
    """Workspace-scoped service identity credential acting on behalf of a user."""

    workspace_id: str
    email: str
    token: AccessToken
    key_material: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspace_id": self.workspace_id,
            "email": self.email,
            "token": self.token.to_dict(),
            "key_material": self.key_material,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImpersonatedCredential":
        return cls(
            workspace_id=data["workspace_id"],
            email=data.get("email", ""),
            token=AccessToken.from_dict(data["token"]),
            key_material=dict(data.get("key_material") or {}),
        )


@dataclass(frozen=True)
class Identity:
    """A logged-in user as known to the identity service.

    ``local_key`` is generated by the CLI at login so credentials can be
    filed before the remote subject id is known.
    """

    local_key: str
    subject_id: str
    email: str
    proxy_group_email: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_key": self.local_key,
            "subject_id": self.subject_id,
            "email": self.email,
            "proxy_group_email": self.proxy_group_email,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        return cls(
            local_key=data["local_key"],
            subject_id=data.get("subject_id", ""),
            email=data.get("email", ""),
            proxy_group_email=data.get("proxy_group_email"),
        )


__all__ = ["AccessToken", "Identity", "ImpersonatedCredential", "UserCredential"]
