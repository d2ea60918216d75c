"""Port for probing cloud objects behind referenced resources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from terracli.domain.resource import Resource


class ResourceAccessChecker(ABC):
    @abstractmethod
    def check_access(self, resource: Resource, token: str) -> bool:
        """Return True if ``token`` can read the backing object, False if the object is gone.

        Raises ``AccessDeniedError`` when the object exists but is not readable.
        """
