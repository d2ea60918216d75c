"""Workspace and server value objects."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class CloudPlatform(str, Enum):
    GCP = "GCP"
    AZURE = "AZURE"


@dataclass(frozen=True)
class Workspace:
    """Snapshot of a workspace as last seen from the workspace service."""

    id: str
    user_facing_id: str
    cloud_platform: CloudPlatform = CloudPlatform.GCP
    platform_project_id: str | None = None
    name: str | None = None
    description: str | None = None
    properties: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_facing_id": self.user_facing_id,
            "cloud_platform": self.cloud_platform.value,
            "platform_project_id": self.platform_project_id,
            "name": self.name,
            "description": self.description,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        return cls(
            id=str(data["id"]),
            user_facing_id=data.get("user_facing_id", ""),
            cloud_platform=CloudPlatform(data.get("cloud_platform", "GCP")),
            platform_project_id=data.get("platform_project_id"),
            name=data.get("name"),
            description=data.get("description"),
            properties=dict(data.get("properties") or {}),
        )


def is_workspace_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class Server:
    name: str
    description: str
    identity_uri: str
    workspace_uri: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "identity_uri": self.identity_uri,
            "workspace_uri": self.workspace_uri,
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "Server":
        return cls(
            name=name,
            description=str(data.get("description", "")),
            identity_uri=str(data["identity_uri"]).rstrip("/"),
            workspace_uri=str(data["workspace_uri"]).rstrip("/"),
        )


__all__ = ["CloudPlatform", "Server", "Workspace", "is_workspace_uuid"]
