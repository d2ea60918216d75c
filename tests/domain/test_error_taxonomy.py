from __future__ import annotations

from datetime import datetime, timedelta, timezone

from terracli.domain.context import PersistedContext
from terracli.domain.errors import (
    AccessDeniedError,
    AuthExpiredError,
    EnvironmentCollisionError,
    NotFoundError,
    PassthroughError,
    RemoteUnavailableError,
    ResourceLimitExceededError,
    SystemInternalError,
    UserActionableError,
    ValidationError,
    WrongStewardshipTypeError,
)
from terracli.domain.identity import AccessToken

from _fakes import make_workspace


def test_exit_codes_follow_taxonomy() -> None:
    assert NotFoundError("x").exit_code == 1
    assert AccessDeniedError("x").exit_code == 1
    assert WrongStewardshipTypeError("x").exit_code == 1
    assert AuthExpiredError("x").exit_code == 1
    assert ValidationError("x").exit_code == 2
    assert ResourceLimitExceededError("x").exit_code == 2
    assert SystemInternalError("x").exit_code == 3
    assert RemoteUnavailableError("x").exit_code == 3
    assert PassthroughError(42).exit_code == 42


def test_user_actionable_family() -> None:
    assert issubclass(ResourceLimitExceededError, UserActionableError)
    assert issubclass(EnvironmentCollisionError, UserActionableError)
    assert not issubclass(SystemInternalError, UserActionableError)


def test_collision_lists_sorted_keys() -> None:
    error = EnvironmentCollisionError(["TERRA_B", "TERRA_A"])
    assert error.keys == ["TERRA_A", "TERRA_B"]
    assert str(error).endswith("TERRA_A, TERRA_B")


def test_token_expired_at_boundary() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    token = AccessToken("t", expires_at=now)
    assert token.expired(now)
    assert not AccessToken("t", expires_at=now + timedelta(seconds=1)).expired(now)


def test_context_serialisation_drops_transient_flag() -> None:
    workspace = make_workspace()
    context = PersistedContext(server="broad-dev", identity_key="abc", workspace=workspace, transient=True)
    data = context.to_dict()
    assert "transient" not in data
    restored = PersistedContext.from_dict(data, default_server="other")
    assert restored.workspace == workspace
    assert restored.transient is False
