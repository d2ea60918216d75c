"""Persisted mirror of the current server, user and workspace."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from terracli.domain.context import PersistedContext
from terracli.domain.errors import SystemInternalError
from terracli.domain.workspace import Workspace
from terracli.settings import DEFAULT_SERVER, RuntimeSettings
from terracli.utils.fs import atomic_write_json
from terracli.utils.telemetry import record_structured_event


class ContextStore:
    """Sole owner of ``context.json``.

    Processes are not coordinated: the last ``save`` wins. Each save replaces
    the file atomically, so a later ``load`` sees either the old or the new
    context.
    """

    def __init__(self, settings: RuntimeSettings, default_server: str = DEFAULT_SERVER) -> None:
        self._settings = settings
        self._default_server = default_server

    @property
    def path(self):
        return self._settings.context_file

    def load(self) -> PersistedContext:
        path = self.path
        if not path.exists():
            context = PersistedContext(server=self._default_server)
            self.save(context)
            return context
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("context file does not contain an object")
            return PersistedContext.from_dict(data, default_server=self._default_server)
        except (ValueError, KeyError, TypeError) as exc:
            record_structured_event(
                self._settings,
                "context.corrupt",
                payload={"path": str(path), "error": str(exc)},
                level="warn",
                component="context",
            )
            context = PersistedContext(server=self._default_server)
            self.save(context)
            return context

    def save(self, context: PersistedContext) -> None:
        if context.transient:
            raise SystemInternalError("Refusing to persist a workspace override")
        atomic_write_json(self.path, context.to_dict())
        record_structured_event(
            self._settings,
            "context.saved",
            payload={
                "server": context.server,
                "workspace": context.workspace.id if context.workspace else None,
                "logged_in": context.identity_key is not None,
            },
            component="context",
        )

    def with_override(self, context: PersistedContext, workspace: Workspace) -> PersistedContext:
        """Copy of ``context`` pointing at ``workspace`` for one command; ``save`` rejects it."""

        return replace(context, workspace=workspace, transient=True)

    def update(self, **changes: Any) -> PersistedContext:
        context = replace(self.load(), **changes)
        self.save(context)
        return context


__all__ = ["ContextStore"]
