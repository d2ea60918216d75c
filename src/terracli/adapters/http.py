"""Thin JSON-over-HTTP client shared by the service adapters."""

from __future__ import annotations

from typing import Any, Callable, Dict

import requests

from terracli.domain.errors import (
    AccessDeniedError,
    AuthExpiredError,
    NotFoundError,
    SystemInternalError,
    TerraCliError,
    UserActionableError,
    ValidationError,
)

DEFAULT_TIMEOUT = 30

_TRANSLATIONS: Dict[int, type[TerraCliError]] = {
    400: ValidationError,
    401: AuthExpiredError,
    403: AccessDeniedError,
    404: NotFoundError,
    409: UserActionableError,
}


class ApiError(RuntimeError):
    """Raw non-2xx response (or connection failure, reported as 503)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def translate_api_error(error: ApiError, context: str | None = None) -> TerraCliError:
    error_cls = _TRANSLATIONS.get(error.status_code, SystemInternalError)
    message = error.message or f"HTTP {error.status_code}"
    if context:
        message = f"{context}: {message}"
    return error_cls(message)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(body, dict):
        for key in ("message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        nested = body.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
    return response.text.strip()


class HttpClient:
    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str] | None = None,
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def session(self) -> requests.Session:
        return self._session

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json_body: Any = None,
        token: str | None = None,
    ) -> Any:
        url = path if "://" in path else f"{self._base_url}{path}"
        headers = {"Accept": "application/json"}
        bearer = token or (self._token_provider() if self._token_provider else None)
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self._timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise ApiError(503, f"{method} {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_message(response))
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, f"{method} {url} returned a non-JSON body") from exc

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def close(self) -> None:
        """Release pooled connections; the session reconnects lazily on the next call."""

        self._session.close()


__all__ = ["ApiError", "HttpClient", "translate_api_error"]
