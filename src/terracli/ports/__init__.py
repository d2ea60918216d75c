"""Ports for the remote services terracli talks to."""

from .auth import TokenRefresher
from .cloud import ResourceAccessChecker
from .identity_service import GroupMembership, IdentityService, UserInfo
from .workspace_service import WorkspaceService

__all__ = ["GroupMembership", "IdentityService", "ResourceAccessChecker", "TokenRefresher", "UserInfo", "WorkspaceService"]
