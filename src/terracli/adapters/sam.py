"""REST client for the identity service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, TypeVar
from urllib.parse import quote

import requests

from terracli.adapters.http import ApiError, HttpClient, translate_api_error
from terracli.app.retrying import RetryingClient
from terracli.domain.errors import SystemInternalError, UserActionableError
from terracli.domain.identity import AccessToken, ImpersonatedCredential
from terracli.domain.workspace import Workspace
from terracli.ports.identity_service import GroupMembership, IdentityService, UserInfo

T = TypeVar("T")

CLOUD_SCOPES = [
    "openid",
    "email",
    "profile",
    "https://www.googleapis.com/auth/cloud-platform",
]
# the token endpoint does not report a lifetime; service identity tokens live one hour
IMPERSONATED_TOKEN_TTL = timedelta(minutes=55)
GROUPS_PATH = "/api/groups/v1"


def _user_info(data: Any) -> UserInfo:
    if not isinstance(data, dict):
        raise SystemInternalError("identity service returned a malformed user record")
    if "userInfo" in data:
        enabled = data.get("enabled") or {}
        info = data["userInfo"] or {}
        return UserInfo(
            subject_id=str(info.get("userSubjectId", "")),
            email=str(info.get("userEmail", "")),
            enabled=bool(enabled.get("ldap", True)) if isinstance(enabled, dict) else bool(enabled),
        )
    return UserInfo(
        subject_id=str(data.get("userSubjectId", "")),
        email=str(data.get("userEmail", "")),
        enabled=bool(data.get("enabled", True)),
    )


def _group_path(name: str) -> str:
    return f"{GROUPS_PATH}/{quote(name, safe='')}"


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, ApiError) and error.status_code == 404


class SamClient(IdentityService):
    def __init__(
        self,
        base_url: str,
        retrying: RetryingClient,
        token_provider: Callable[[], str],
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._http = HttpClient(base_url, token_provider=token_provider, session=session)
        self._retrying = retrying.bind(self._http.close)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _call(self, context: str, operation: Callable[[], T]) -> T:
        try:
            return self._retrying.call(operation)
        except ApiError as exc:
            raise translate_api_error(exc, context) from exc

    def get_user_info(self) -> UserInfo:
        return _user_info(self._call("Error getting user info", self._fetch_user_info))

    def register_user(self) -> UserInfo:
        return _user_info(self._call("Error registering user", self._register))

    def get_user_info_or_register(self) -> UserInfo:
        result = self._retrying.call_with_recovery(self._fetch_user_info, _is_not_found, self._register)
        if result.error is not None:
            error = result.error
            if isinstance(error, ApiError):
                raise translate_api_error(error, "Error getting user info") from error
            raise error
        return _user_info(result.value)

    def invite_user(self, email: str) -> None:
        self._call(f"Error inviting {email}", lambda: self._http.post(f"/api/users/v1/invite/{email}"))

    def get_proxy_group_email(self, email: str) -> str:
        data = self._call(
            "Error getting proxy group email",
            lambda: self._http.get(f"/api/google/v1/user/proxyGroup/{email}"),
        )
        if not isinstance(data, str) or not data:
            raise SystemInternalError("identity service returned an empty proxy group email")
        return data

    def get_impersonated_credential(self, workspace: Workspace) -> ImpersonatedCredential:
        project = workspace.platform_project_id
        if not project:
            raise UserActionableError(
                f"Workspace '{workspace.user_facing_id}' has no cloud project; its service identity is unavailable."
            )
        base = f"/api/google/v1/user/petServiceAccount/{project}"
        key = self._call("Error fetching service identity key", lambda: self._http.get(f"{base}/key"))
        if not isinstance(key, dict) or not key.get("client_email"):
            raise SystemInternalError("identity service returned malformed service identity key material")
        now = self._clock()
        token = self._call(
            "Error fetching service identity token",
            lambda: self._http.post(f"{base}/token", json_body=CLOUD_SCOPES),
        )
        if not isinstance(token, str) or not token:
            raise SystemInternalError("identity service returned an empty service identity token")
        return ImpersonatedCredential(
            workspace_id=workspace.id,
            email=str(key["client_email"]),
            token=AccessToken(value=token, expires_at=now + IMPERSONATED_TOKEN_TTL),
            key_material=key,
        )

    # groups

    def list_groups(self) -> List[GroupMembership]:
        data = self._call("Error listing groups", lambda: self._http.get(GROUPS_PATH))
        if not isinstance(data, list):
            raise SystemInternalError("identity service returned a malformed group list")
        return [
            GroupMembership(
                name=str(entry.get("groupName", "")),
                email=str(entry.get("groupEmail", "")),
                role=str(entry.get("role", "")).upper(),
            )
            for entry in data
            if isinstance(entry, dict)
        ]

    def get_group_email(self, name: str) -> str:
        data = self._call(f"Error getting group {name}", lambda: self._http.get(_group_path(name)))
        if not isinstance(data, str) or not data:
            raise SystemInternalError(f"identity service returned no email for group {name}")
        return data

    def delete_group(self, name: str) -> None:
        self._call(f"Error deleting group {name}", lambda: self._http.delete(_group_path(name)))

    def _fetch_user_info(self) -> Dict[str, Any]:
        return self._http.get("/register/user/v2/self/info")

    def _register(self) -> Dict[str, Any]:
        return self._http.post("/register/user/v2/self")


__all__ = ["CLOUD_SCOPES", "GROUPS_PATH", "IMPERSONATED_TOKEN_TTL", "SamClient"]
