"""Workspace resources as a tagged variant.

A resource is one common record plus a ``resource_type`` tag and a
type-specific ``attributes`` payload. Behaviour that differs per type is
looked up in the tables below rather than dispatched through subclasses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping

from .errors import ValidationError

ENV_PREFIX = "TERRA_"

_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


class ResourceType(str, Enum):
    GCS_BUCKET = "GCS_BUCKET"
    GCS_OBJECT = "GCS_OBJECT"
    BQ_DATASET = "BQ_DATASET"
    BQ_TABLE = "BQ_TABLE"
    AI_NOTEBOOK = "AI_NOTEBOOK"
    GIT_REPO = "GIT_REPO"


class StewardshipType(str, Enum):
    CONTROLLED = "CONTROLLED"
    REFERENCED = "REFERENCED"


class CloningPolicy(str, Enum):
    COPY_NOTHING = "COPY_NOTHING"
    COPY_REFERENCE = "COPY_REFERENCE"
    COPY_RESOURCE = "COPY_RESOURCE"
    # reference-only policy for resources the workspace links but does not own
    REFERENCE = "REFERENCE"


REQUIRED_ATTRIBUTES: Dict[ResourceType, tuple[str, ...]] = {
    ResourceType.GCS_BUCKET: ("bucket_name",),
    ResourceType.GCS_OBJECT: ("bucket_name", "object_name"),
    ResourceType.BQ_DATASET: ("project_id", "dataset_id"),
    ResourceType.BQ_TABLE: ("project_id", "dataset_id", "table_id"),
    ResourceType.AI_NOTEBOOK: ("project_id", "location", "instance_id"),
    ResourceType.GIT_REPO: ("git_repo_url",),
}

CONTROLLED_TYPES = frozenset({ResourceType.GCS_BUCKET, ResourceType.BQ_DATASET, ResourceType.AI_NOTEBOOK})
REFERENCED_TYPES = frozenset(set(ResourceType) - {ResourceType.AI_NOTEBOOK})

DEFAULT_CLONING: Dict[StewardshipType, CloningPolicy] = {
    StewardshipType.CONTROLLED: CloningPolicy.COPY_RESOURCE,
    StewardshipType.REFERENCED: CloningPolicy.COPY_REFERENCE,
}


def _resolve_bucket(attrs: Mapping[str, str]) -> str:
    return f"gs://{attrs['bucket_name']}"


def _resolve_object(attrs: Mapping[str, str]) -> str:
    return f"gs://{attrs['bucket_name']}/{attrs['object_name']}"


def _resolve_dataset(attrs: Mapping[str, str]) -> str:
    return f"{attrs['project_id']}.{attrs['dataset_id']}"


def _resolve_table(attrs: Mapping[str, str]) -> str:
    return f"{attrs['project_id']}.{attrs['dataset_id']}.{attrs['table_id']}"


def _resolve_notebook(attrs: Mapping[str, str]) -> str:
    return f"projects/{attrs['project_id']}/locations/{attrs['location']}/instances/{attrs['instance_id']}"


def _resolve_git_repo(attrs: Mapping[str, str]) -> str:
    return attrs["git_repo_url"]


RESOLVERS: Dict[ResourceType, Callable[[Mapping[str, str]], str]] = {
    ResourceType.GCS_BUCKET: _resolve_bucket,
    ResourceType.GCS_OBJECT: _resolve_object,
    ResourceType.BQ_DATASET: _resolve_dataset,
    ResourceType.BQ_TABLE: _resolve_table,
    ResourceType.AI_NOTEBOOK: _resolve_notebook,
    ResourceType.GIT_REPO: _resolve_git_repo,
}


def is_valid_resource_name(name: str) -> bool:
    return bool(_NAME_RE.match(name or ""))


def env_var_name(resource_name: str) -> str:
    return ENV_PREFIX + _NON_ALNUM_RE.sub("_", resource_name.upper())


@dataclass(frozen=True)
class Resource:
    id: str
    name: str
    resource_type: ResourceType
    stewardship: StewardshipType
    cloning: CloningPolicy
    attributes: Dict[str, str] = field(default_factory=dict)
    description: str | None = None

    @property
    def env_var(self) -> str:
        return env_var_name(self.name)

    @property
    def is_controlled(self) -> bool:
        return self.stewardship is StewardshipType.CONTROLLED

    def resolve(self) -> str:
        return resolve(self)

    def validate(self) -> None:
        if not is_valid_resource_name(self.name):
            raise ValidationError("Resource name can contain only alphanumeric and underscore characters.")
        missing = [key for key in REQUIRED_ATTRIBUTES[self.resource_type] if not self.attributes.get(key)]
        if missing:
            raise ValidationError(
                f"{self.resource_type.value} resource '{self.name}' is missing attributes: {', '.join(missing)}"
            )

    def evolve(self, **changes: Any) -> "Resource":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "resource_type": self.resource_type.value,
            "stewardship": self.stewardship.value,
            "cloning": self.cloning.value,
            "description": self.description,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        stewardship = StewardshipType(data.get("stewardship", StewardshipType.REFERENCED.value))
        cloning = data.get("cloning")
        return cls(
            id=str(data.get("id", "")),
            name=data["name"],
            resource_type=ResourceType(data["resource_type"]),
            stewardship=stewardship,
            cloning=CloningPolicy(cloning) if cloning else DEFAULT_CLONING[stewardship],
            attributes={str(k): str(v) for k, v in (data.get("attributes") or {}).items()},
            description=data.get("description"),
        )


def resolve(resource: Resource) -> str:
    """Return the tool-usable identifier; depends only on the resource's fields."""

    try:
        return RESOLVERS[resource.resource_type](resource.attributes)
    except KeyError as exc:
        raise ValidationError(
            f"Resource '{resource.name}' cannot be resolved: missing attribute {exc.args[0]}"
        ) from exc


__all__ = [
    "CONTROLLED_TYPES",
    "CloningPolicy",
    "DEFAULT_CLONING",
    "ENV_PREFIX",
    "REFERENCED_TYPES",
    "REQUIRED_ATTRIBUTES",
    "RESOLVERS",
    "Resource",
    "ResourceType",
    "StewardshipType",
    "env_var_name",
    "is_valid_resource_name",
    "resolve",
]
