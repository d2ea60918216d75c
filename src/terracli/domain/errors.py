"""Error taxonomy shared by every layer of the CLI.

Each error carries the process exit code the command surface maps it to.
"""

from __future__ import annotations


class TerraCliError(RuntimeError):
    """Base class for all errors raised deliberately by terracli."""

    exit_code = 3


class UserActionableError(TerraCliError):
    """Safe to show directly to the user; the user can fix the cause."""

    exit_code = 1


class NotFoundError(UserActionableError):
    pass


class AccessDeniedError(UserActionableError):
    pass


class WrongStewardshipTypeError(UserActionableError):
    pass


class AuthExpiredError(UserActionableError):
    """Raised when credentials cannot be refreshed without user interaction."""


class ValidationError(UserActionableError):
    exit_code = 2


class ResourceLimitExceededError(ValidationError):
    pass


class EnvironmentCollisionError(ValidationError):
    def __init__(self, keys: list[str]) -> None:
        self.keys = sorted(keys)
        super().__init__(
            "Workspace reference cannot overwrite an environment variable used by the tool command: "
            + ", ".join(self.keys)
        )


class RemoteUnavailableError(TerraCliError):
    """A transient remote failure persisted after all retries."""


class SystemInternalError(TerraCliError):
    """Broken internal assumption or unexpected remote response."""


class PassthroughError(TerraCliError):
    """A launched tool exited non-zero; its code is propagated verbatim."""

    def __init__(self, exit_code: int) -> None:
        super().__init__(f"Command exited with code {exit_code}")
        self.exit_code = exit_code


__all__ = [
    "AccessDeniedError",
    "AuthExpiredError",
    "EnvironmentCollisionError",
    "NotFoundError",
    "PassthroughError",
    "RemoteUnavailableError",
    "ResourceLimitExceededError",
    "SystemInternalError",
    "TerraCliError",
    "UserActionableError",
    "ValidationError",
    "WrongStewardshipTypeError",
]
