"""On-disk projection of the CLI's current server, user and workspace."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

from .workspace import Workspace

CONTEXT_VERSION = 1


@dataclass(frozen=True)
class PersistedContext:
    server: str
    identity_key: str | None = None
    workspace: Workspace | None = None
    # request-scoped copy produced by a workspace override; never written
    transient: bool = False

    def with_workspace(self, workspace: Workspace | None) -> "PersistedContext":
        return replace(self, workspace=workspace)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CONTEXT_VERSION,
            "server": self.server,
            "identity_key": self.identity_key,
            "workspace": self.workspace.to_dict() if self.workspace else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, default_server: str) -> "PersistedContext":
        workspace = data.get("workspace")
        return cls(
            server=data.get("server") or default_server,
            identity_key=data.get("identity_key"),
            workspace=Workspace.from_dict(workspace) if workspace else None,
        )


__all__ = ["CONTEXT_VERSION", "PersistedContext"]
