from __future__ import annotations

import pytest

from terracli.app.resources import PAGE_SIZE, ResourceRegistry
from terracli.domain.errors import (
    AccessDeniedError,
    NotFoundError,
    ResourceLimitExceededError,
    SystemInternalError,
    UserActionableError,
    ValidationError,
    WrongStewardshipTypeError,
)
from terracli.domain.resource import CloningPolicy, ResourceType, StewardshipType

from _fakes import FakeAccessChecker, FakeWorkspaceService, make_resource, make_workspace


@pytest.fixture()
def service() -> FakeWorkspaceService:
    return FakeWorkspaceService()


@pytest.fixture()
def checker() -> FakeAccessChecker:
    return FakeAccessChecker()


def _registry(service, checker, limit: int = 1000, token: str | None = "pet-token") -> ResourceRegistry:
    return ResourceRegistry(
        service,
        checker,
        resource_limit=limit,
        token_provider=(lambda: token) if token else None,
    )


def test_list_pages_through_service(service, checker) -> None:
    workspace = service.add_workspace(
        make_workspace(), [make_resource(f"r{index}") for index in range(PAGE_SIZE * 2 + 5)]
    )
    resources = _registry(service, checker).list(workspace)
    assert len(resources) == PAGE_SIZE * 2 + 5
    assert [offset for _, offset, _ in service.enumerate_calls] == [0, PAGE_SIZE, PAGE_SIZE * 2]


def test_list_over_limit_fails_without_partial_result(service, checker) -> None:
    workspace = service.add_workspace(make_workspace(), [make_resource("a"), make_resource("b")])
    with pytest.raises(ResourceLimitExceededError):
        _registry(service, checker, limit=1).list(workspace)


def test_list_at_limit_succeeds(service, checker) -> None:
    workspace = service.add_workspace(make_workspace(), [make_resource("a"), make_resource("b")])
    assert [r.name for r in _registry(service, checker, limit=2).list(workspace)] == ["a", "b"]


def test_describe_missing_resource(service, checker) -> None:
    workspace = service.add_workspace(make_workspace(), [make_resource("a")])
    registry = _registry(service, checker)
    assert registry.describe(workspace, "a").name == "a"
    with pytest.raises(NotFoundError, match="Resource not found: b"):
        registry.describe(workspace, "b")


def test_check_access_on_controlled_resource(service, checker) -> None:
    controlled = make_resource("mine", stewardship=StewardshipType.CONTROLLED)
    with pytest.raises(WrongStewardshipTypeError):
        _registry(service, checker).check_access(controlled)
    assert checker.tokens == []


def test_check_access_denied_is_user_actionable(service) -> None:
    checker = FakeAccessChecker({"secret": AccessDeniedError("Access denied")})
    with pytest.raises(UserActionableError) as excinfo:
        _registry(service, checker).check_access(make_resource("secret"))
    assert isinstance(excinfo.value, AccessDeniedError)
    assert not isinstance(excinfo.value, SystemInternalError)


def test_check_access_uses_injected_token(service) -> None:
    checker = FakeAccessChecker({"gone": False})
    registry = _registry(service, checker)
    assert registry.check_access(make_resource("ok")) is True
    assert registry.check_access(make_resource("gone")) is False
    assert checker.tokens == ["pet-token", "pet-token"]


def test_check_access_without_credentials(service, checker) -> None:
    with pytest.raises(SystemInternalError):
        _registry(service, checker, token=None).check_access(make_resource("ok"))


def test_delete_dispatches_on_remote_stewardship(service, checker) -> None:
    controlled = make_resource("bucket", stewardship=StewardshipType.CONTROLLED)
    referenced = make_resource("ref")
    workspace = service.add_workspace(make_workspace(), [controlled, referenced])
    registry = _registry(service, checker)
    registry.delete(workspace, controlled)
    registry.delete(workspace, referenced)
    assert service.deleted == [("CONTROLLED", "bucket"), ("REFERENCED", "ref")]
    with pytest.raises(NotFoundError):
        registry.delete(workspace, referenced)


def test_add_referenced_validates(service, checker) -> None:
    workspace = service.add_workspace(make_workspace(), [make_resource("taken")])
    registry = _registry(service, checker)
    with pytest.raises(ValidationError):
        registry.add_referenced(workspace, make_resource("bad-name"))
    with pytest.raises(ValidationError):
        registry.add_referenced(workspace, make_resource("taken"))
    with pytest.raises(UserActionableError):
        registry.add_referenced(workspace, make_resource("nb", ResourceType.AI_NOTEBOOK))
    with pytest.raises(ValidationError):
        registry.add_referenced(workspace, make_resource("copy", cloning=CloningPolicy.COPY_RESOURCE))
    created = registry.add_referenced(workspace, make_resource("fresh", ResourceType.GIT_REPO))
    assert created.stewardship is StewardshipType.REFERENCED
    assert registry.describe(workspace, "fresh").resolve() == "https://github.com/example/repo.git"


def test_create_controlled_support_matrix(service, checker) -> None:
    workspace = service.add_workspace(make_workspace())
    registry = _registry(service, checker)
    with pytest.raises(UserActionableError):
        registry.create_controlled(workspace, make_resource("repo", ResourceType.GIT_REPO))
    with pytest.raises(ValidationError):
        registry.create_controlled(
            workspace, make_resource("ds", ResourceType.BQ_DATASET).evolve(attributes={})
        )
    bucket = registry.create_controlled(workspace, make_resource("bucket").evolve(attributes={}))
    assert bucket.is_controlled
    assert bucket.resolve().startswith("gs://bucket-")
