"""Results of duplicating a workspace's resource graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from .resource import Resource
from .workspace import Workspace


class CloneResult(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class CloneOutcome:
    source: Resource
    result: CloneResult
    destination: Resource | None = None
    message: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_resource": self.source.to_dict(),
            "destination_resource": self.destination.to_dict() if self.destination else None,
            "result": self.result.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class ClonedWorkspace:
    source_workspace: Workspace
    destination_workspace: Workspace
    outcomes: List[CloneOutcome] = field(default_factory=list)

    def count(self, result: CloneResult) -> int:
        return sum(1 for outcome in self.outcomes if outcome.result is result)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_workspace": self.source_workspace.to_dict(),
            "destination_workspace": self.destination_workspace.to_dict(),
            "resources": [outcome.to_dict() for outcome in self.outcomes],
        }


__all__ = ["CloneOutcome", "CloneResult", "ClonedWorkspace"]
