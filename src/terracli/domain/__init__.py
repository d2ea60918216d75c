"""Domain exports."""

from .clone import CloneOutcome, CloneResult, ClonedWorkspace
from .context import PersistedContext
from .identity import AccessToken, Identity, ImpersonatedCredential, UserCredential
from .resource import CloningPolicy, Resource, ResourceType, StewardshipType
from .workspace import CloudPlatform, Server, Workspace

__all__ = [
    "AccessToken",
    "CloneOutcome",
    "CloneResult",
    "ClonedWorkspace",
    "CloningPolicy",
    "CloudPlatform",
    "Identity",
    "ImpersonatedCredential",
    "PersistedContext",
    "Resource",
    "ResourceType",
    "Server",
    "StewardshipType",
    "UserCredential",
    "Workspace",
]
