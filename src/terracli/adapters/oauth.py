"""OAuth refresh-token grant against the Google token endpoint."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import requests

from terracli.adapters.http import DEFAULT_TIMEOUT, ApiError, translate_api_error
from terracli.app.retrying import RetryingClient
from terracli.domain.errors import AuthExpiredError, SystemInternalError
from terracli.domain.identity import AccessToken, UserCredential
from terracli.ports.auth import TokenRefresher

TOKEN_URI = "https://oauth2.googleapis.com/token"
_DEFAULT_LIFETIME = 3600


class OAuthTokenRefresher(TokenRefresher):
    def __init__(
        self,
        retrying: RetryingClient,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
        token_uri: str = TOKEN_URI,
    ) -> None:
        self._session = session or requests.Session()
        self._retrying = retrying.bind(self._session.close)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._token_uri = token_uri

    def refresh(self, credential: UserCredential) -> AccessToken:
        now = self._clock()
        try:
            payload = self._retrying.call(lambda: self._grant(credential))
        except ApiError as exc:
            if exc.status_code in (400, 401):
                raise AuthExpiredError(
                    f"Login credentials are no longer valid ({exc.message}). Run 'terra auth login' again."
                ) from exc
            raise translate_api_error(exc, "Error refreshing access token") from exc
        token = payload.get("access_token")
        if not token:
            raise SystemInternalError("token endpoint response did not include an access token")
        lifetime = int(payload.get("expires_in") or _DEFAULT_LIFETIME)
        return AccessToken(value=token, expires_at=now + timedelta(seconds=lifetime))

    def _grant(self, credential: UserCredential) -> dict:
        data = {
            "grant_type": "refresh_token",
            "client_id": credential.client_id,
            "client_secret": credential.client_secret,
            "refresh_token": credential.refresh_token,
        }
        try:
            response = self._session.post(self._token_uri, data=data, timeout=DEFAULT_TIMEOUT)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise ApiError(503, f"token refresh failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            message = body.get("error_description") or body.get("error") if isinstance(body, dict) else None
            raise ApiError(response.status_code, str(message or response.text))
        if not isinstance(body, dict):
            raise ApiError(response.status_code, "token endpoint returned a non-object body")
        return body


__all__ = ["OAuthTokenRefresher", "TOKEN_URI"]
