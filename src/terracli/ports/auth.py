"""Port for refreshing end-user OAuth tokens."""

from __future__ import annotations

from abc import ABC, abstractmethod

from terracli.domain.identity import AccessToken, UserCredential


class TokenRefresher(ABC):
    @abstractmethod
    def refresh(self, credential: UserCredential) -> AccessToken:
        """Exchange the refresh token for a new access token.

        Raises ``AuthExpiredError`` when the refresh token is no longer valid.
        """
