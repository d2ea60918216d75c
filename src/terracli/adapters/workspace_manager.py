"""REST client for the workspace-management service."""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, List, TypeVar

import requests

from terracli.adapters.http import ApiError, HttpClient, translate_api_error
from terracli.app.retrying import RetryingClient
from terracli.domain.errors import SystemInternalError
from terracli.domain.resource import (
    DEFAULT_CLONING,
    CloningPolicy,
    Resource,
    ResourceType,
    StewardshipType,
)
from terracli.domain.workspace import CloudPlatform, Workspace
from terracli.ports.workspace_service import WorkspaceService

T = TypeVar("T")

API_ROOT = "/api/workspaces/v1"

# resource type -> (wire enum, URL path segment, attribute block key, {wire field: attribute})
WIRE_TYPES: Dict[ResourceType, tuple[str, str, str, Dict[str, str]]] = {
    ResourceType.GCS_BUCKET: ("GCS_BUCKET", "gcp/buckets", "gcpGcsBucket", {"bucketName": "bucket_name"}),
    ResourceType.GCS_OBJECT: (
        "GCS_OBJECT",
        "gcp/bucket/objects",
        "gcpGcsObject",
        {"bucketName": "bucket_name", "fileName": "object_name"},
    ),
    ResourceType.BQ_DATASET: (
        "BIG_QUERY_DATASET",
        "gcp/bigquerydatasets",
        "gcpBqDataset",
        {"projectId": "project_id", "datasetId": "dataset_id"},
    ),
    ResourceType.BQ_TABLE: (
        "BIG_QUERY_DATA_TABLE",
        "gcp/bigquerydatatables",
        "gcpBqDataTable",
        {"projectId": "project_id", "datasetId": "dataset_id", "dataTableId": "table_id"},
    ),
    ResourceType.AI_NOTEBOOK: (
        "AI_NOTEBOOK",
        "gcp/ai-notebook-instances",
        "gcpAiNotebookInstance",
        {"projectId": "project_id", "location": "location", "instanceId": "instance_id"},
    ),
    ResourceType.GIT_REPO: ("GIT_REPO", "gitrepos", "gitRepo", {"gitRepoUrl": "git_repo_url"}),
}
_TYPES_BY_WIRE = {wire: rtype for rtype, (wire, *_rest) in WIRE_TYPES.items()}


def _workspace_from_wire(data: Dict[str, Any]) -> Workspace:
    if not isinstance(data, dict) or "id" not in data:
        raise SystemInternalError("workspace service returned a malformed workspace description")
    gcp = data.get("gcpContext") or {}
    properties = {
        str(item.get("key")): str(item.get("value"))
        for item in data.get("properties") or []
        if isinstance(item, dict) and item.get("key")
    }
    platform = CloudPlatform.AZURE if data.get("azureContext") and not gcp else CloudPlatform.GCP
    return Workspace(
        id=str(data["id"]),
        user_facing_id=data.get("userFacingId") or "",
        cloud_platform=platform,
        platform_project_id=gcp.get("projectId"),
        name=data.get("displayName"),
        description=data.get("description"),
        properties=properties,
    )


def _resource_from_wire(data: Dict[str, Any]) -> Resource:
    metadata = data.get("metadata") or {}
    resource_type = _TYPES_BY_WIRE.get(metadata.get("resourceType", ""))
    if resource_type is None:
        raise SystemInternalError(f"Unsupported resource type from workspace service: {metadata.get('resourceType')}")
    _, _, block_key, fields = WIRE_TYPES[resource_type]
    attribute_union = data.get("resourceAttributes") or {}
    block = attribute_union.get(block_key) or data.get("attributes") or {}
    stewardship = StewardshipType(metadata.get("stewardshipType", StewardshipType.REFERENCED.value))
    cloning = metadata.get("cloningInstructions")
    try:
        cloning_policy = CloningPolicy(cloning) if cloning else DEFAULT_CLONING[stewardship]
    except ValueError:
        cloning_policy = DEFAULT_CLONING[stewardship]
    return Resource(
        id=str(metadata.get("resourceId", "")),
        name=metadata.get("name", ""),
        resource_type=resource_type,
        stewardship=stewardship,
        cloning=cloning_policy,
        attributes={attr: str(block[wire]) for wire, attr in fields.items() if block.get(wire) is not None},
        description=metadata.get("description"),
    )


def _attributes_to_wire(resource: Resource) -> Dict[str, str]:
    _, _, _, fields = WIRE_TYPES[resource.resource_type]
    return {wire: resource.attributes[attr] for wire, attr in fields.items() if attr in resource.attributes}


def _controlled_body(resource: Resource) -> Dict[str, Any]:
    attrs = resource.attributes
    creation: Dict[ResourceType, tuple[str, Dict[str, Any]]] = {
        ResourceType.GCS_BUCKET: ("gcsBucket", {"name": attrs.get("bucket_name")}),
        ResourceType.BQ_DATASET: ("dataset", {"datasetId": attrs.get("dataset_id"), "location": attrs.get("location")}),
        ResourceType.AI_NOTEBOOK: (
            "aiNotebookInstance",
            {"instanceId": attrs.get("instance_id"), "location": attrs.get("location")},
        ),
    }
    key, params = creation[resource.resource_type]
    return {
        "common": {
            "name": resource.name,
            "description": resource.description,
            "cloningInstructions": resource.cloning.value,
            "accessScope": "SHARED_ACCESS",
            "managedBy": "USER",
        },
        key: {name: value for name, value in params.items() if value is not None},
    }


class WorkspaceManagerClient(WorkspaceService):
    def __init__(
        self,
        base_url: str,
        retrying: RetryingClient,
        token_provider: Callable[[], str],
        session: requests.Session | None = None,
    ) -> None:
        self._http = HttpClient(base_url, token_provider=token_provider, session=session)
        self._retrying = retrying.bind(self._http.close)

    def _call(self, context: str, operation: Callable[[], T]) -> T:
        try:
            return self._retrying.call(operation)
        except ApiError as exc:
            raise translate_api_error(exc, context) from exc

    # workspaces

    def create_workspace(
        self,
        user_facing_id: str,
        cloud_platform: CloudPlatform,
        *,
        name: str | None = None,
        description: str | None = None,
        properties: Dict[str, str] | None = None,
    ) -> Workspace:
        body = {
            "id": str(uuid.uuid4()),
            "userFacingId": user_facing_id,
            "displayName": name,
            "description": description,
            "stage": "MC_WORKSPACE",
            "cloudPlatform": cloud_platform.value,
            "properties": [{"key": key, "value": value} for key, value in (properties or {}).items()],
        }
        created = self._call("Error creating workspace", lambda: self._http.post(API_ROOT, json_body=body))
        workspace_id = (created or {}).get("id", body["id"])
        return self.get_workspace(str(workspace_id))

    def get_workspace(self, workspace_id: str) -> Workspace:
        data = self._call("Error fetching workspace", lambda: self._http.get(f"{API_ROOT}/{workspace_id}"))
        return _workspace_from_wire(data)

    def get_workspace_by_user_facing_id(self, user_facing_id: str) -> Workspace:
        data = self._call(
            "Error fetching workspace",
            lambda: self._http.get(f"{API_ROOT}/workspaceByUserFacingId/{user_facing_id}"),
        )
        return _workspace_from_wire(data)

    def list_workspaces(self, offset: int, limit: int) -> List[Workspace]:
        data = self._call(
            "Error listing workspaces",
            lambda: self._http.get(API_ROOT, params={"offset": offset, "limit": limit}),
        )
        return [_workspace_from_wire(item) for item in (data or {}).get("workspaces", [])]

    def update_workspace(
        self,
        workspace_id: str,
        *,
        user_facing_id: str | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> Workspace:
        body = {
            key: value
            for key, value in (("userFacingId", user_facing_id), ("displayName", name), ("description", description))
            if value is not None
        }
        data = self._call(
            "Error updating workspace",
            lambda: self._http.patch(f"{API_ROOT}/{workspace_id}", json_body=body),
        )
        return _workspace_from_wire(data)

    def delete_workspace(self, workspace_id: str) -> None:
        self._call("Error deleting workspace", lambda: self._http.delete(f"{API_ROOT}/{workspace_id}"))

    # resources

    def enumerate_resources(self, workspace_id: str, offset: int, limit: int) -> List[Resource]:
        data = self._call(
            "Error enumerating resources",
            lambda: self._http.get(
                f"{API_ROOT}/{workspace_id}/resources", params={"offset": offset, "limit": limit}
            ),
        )
        return [_resource_from_wire(item) for item in (data or {}).get("resources", [])]

    def _resource_path(self, workspace_id: str, stewardship: StewardshipType, resource_type: ResourceType) -> str:
        segment = WIRE_TYPES[resource_type][1]
        return f"{API_ROOT}/{workspace_id}/resources/{stewardship.value.lower()}/{segment}"

    def create_controlled_resource(self, workspace_id: str, resource: Resource) -> Resource:
        path = self._resource_path(workspace_id, StewardshipType.CONTROLLED, resource.resource_type)
        body = _controlled_body(resource)
        created = self._call(
            f"Error creating controlled resource '{resource.name}'",
            lambda: self._http.post(path, json_body=body),
        )
        resource_id = (created or {}).get("resourceId")
        if not resource_id:
            raise SystemInternalError(f"workspace service did not return an id for '{resource.name}'")
        data = self._call(
            f"Error fetching controlled resource '{resource.name}'",
            lambda: self._http.get(f"{path}/{resource_id}"),
        )
        return _resource_from_wire(data)

    def delete_controlled_resource(self, workspace_id: str, resource: Resource) -> None:
        path = self._resource_path(workspace_id, StewardshipType.CONTROLLED, resource.resource_type)
        self._call(
            f"Error deleting controlled resource '{resource.name}'",
            lambda: self._http.delete(f"{path}/{resource.id}"),
        )

    def create_referenced_resource(self, workspace_id: str, resource: Resource) -> Resource:
        path = self._resource_path(workspace_id, StewardshipType.REFERENCED, resource.resource_type)
        body = {
            "metadata": {
                "name": resource.name,
                "description": resource.description,
                "cloningInstructions": resource.cloning.value,
            },
            WIRE_TYPES[resource.resource_type][2]: _attributes_to_wire(resource),
        }
        data = self._call(
            f"Error creating referenced resource '{resource.name}'",
            lambda: self._http.post(path, json_body=body),
        )
        return _resource_from_wire(data)

    def delete_referenced_resource(self, workspace_id: str, resource: Resource) -> None:
        path = self._resource_path(workspace_id, StewardshipType.REFERENCED, resource.resource_type)
        self._call(
            f"Error deleting referenced resource '{resource.name}'",
            lambda: self._http.delete(f"{path}/{resource.id}"),
        )

    # roles

    def list_roles(self, workspace_id: str) -> Dict[str, List[str]]:
        data = self._call("Error listing users", lambda: self._http.get(f"{API_ROOT}/{workspace_id}/roles"))
        roles: Dict[str, List[str]] = {}
        for binding in data or []:
            roles[str(binding.get("role"))] = [str(member) for member in binding.get("members") or []]
        return roles

    def grant_role(self, workspace_id: str, email: str, role: str) -> None:
        self._call(
            f"Error granting {role} to {email}",
            lambda: self._http.post(
                f"{API_ROOT}/{workspace_id}/roles/{role}/members", json_body={"memberEmail": email}
            ),
        )

    def remove_role(self, workspace_id: str, email: str, role: str) -> None:
        self._call(
            f"Error removing {role} from {email}",
            lambda: self._http.delete(f"{API_ROOT}/{workspace_id}/roles/{role}/members/{email}"),
        )


__all__ = ["WIRE_TYPES", "WorkspaceManagerClient"]
