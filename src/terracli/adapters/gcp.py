"""Read probes against cloud storage and BigQuery for referenced resources."""

from __future__ import annotations

from typing import Callable, Dict, Mapping
from urllib.parse import quote

import requests

from terracli.adapters.http import ApiError, HttpClient, translate_api_error
from terracli.app.retrying import RetryingClient
from terracli.domain.errors import AccessDeniedError, UserActionableError
from terracli.domain.resource import Resource, ResourceType
from terracli.ports.cloud import ResourceAccessChecker

STORAGE_API = "https://storage.googleapis.com/storage/v1"
BIGQUERY_API = "https://bigquery.googleapis.com/bigquery/v2"


def _bucket_url(attrs: Mapping[str, str]) -> str:
    return f"{STORAGE_API}/b/{quote(attrs['bucket_name'], safe='')}"


def _object_url(attrs: Mapping[str, str]) -> str:
    return f"{_bucket_url(attrs)}/o/{quote(attrs['object_name'], safe='')}"


def _dataset_url(attrs: Mapping[str, str]) -> str:
    return f"{BIGQUERY_API}/projects/{attrs['project_id']}/datasets/{attrs['dataset_id']}"


def _table_url(attrs: Mapping[str, str]) -> str:
    return f"{_dataset_url(attrs)}/tables/{attrs['table_id']}"


PROBES: Dict[ResourceType, Callable[[Mapping[str, str]], str]] = {
    ResourceType.GCS_BUCKET: _bucket_url,
    ResourceType.GCS_OBJECT: _object_url,
    ResourceType.BQ_DATASET: _dataset_url,
    ResourceType.BQ_TABLE: _table_url,
}


class GcpAccessChecker(ResourceAccessChecker):
    def __init__(self, retrying: RetryingClient, session: requests.Session | None = None) -> None:
        self._http = HttpClient("", session=session)
        self._retrying = retrying.bind(self._http.close)

    def check_access(self, resource: Resource, token: str) -> bool:
        probe = PROBES.get(resource.resource_type)
        if probe is None:
            raise UserActionableError(f"Checking access is not supported for {resource.resource_type.value} resources.")
        url = probe(resource.attributes)
        try:
            self._retrying.call(lambda: self._http.get(url, token=token))
        except ApiError as exc:
            if exc.status_code == 404:
                return False
            if exc.status_code in (401, 403):
                raise AccessDeniedError(
                    f"Access denied to {resource.resolve()} for resource '{resource.name}'"
                ) from exc
            raise translate_api_error(exc, f"Error checking access to '{resource.name}'") from exc
        return True


__all__ = ["GcpAccessChecker", "PROBES"]
