"""Workspace lifecycle operations."""

from .service import ROLES, WorkspaceOperations

__all__ = ["ROLES", "WorkspaceOperations"]
