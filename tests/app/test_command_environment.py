from __future__ import annotations

import pytest

from terracli.app.credentials import CredentialStore
from terracli.app.environment import CREDENTIALS_VAR, PROJECT_VAR, CommandEnvironmentBuilder
from terracli.app.resources import ResourceRegistry
from terracli.domain.errors import EnvironmentCollisionError
from terracli.domain.resource import ResourceType

from _fakes import (
    FakeAccessChecker,
    FakeIdentityService,
    FakeRefresher,
    FakeWorkspaceService,
    make_resource,
    make_workspace,
    user_credential,
)


@pytest.fixture()
def identity_service() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture()
def credentials(runtime_settings, identity_service) -> CredentialStore:
    return CredentialStore(runtime_settings, FakeRefresher(), lambda provider: identity_service)


@pytest.fixture()
def service() -> FakeWorkspaceService:
    return FakeWorkspaceService()


@pytest.fixture()
def builder(service, credentials) -> CommandEnvironmentBuilder:
    return CommandEnvironmentBuilder(ResourceRegistry(service, FakeAccessChecker()), credentials)


def test_build_includes_resources_and_platform(service, builder, credentials) -> None:
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(
        make_workspace(project="analysis-project"),
        [make_resource("my_bucket"), make_resource("cohort", ResourceType.BQ_DATASET)],
    )
    env = builder.build(workspace, identity, {"PATH_HINT": "x"})
    assert env["TERRA_MY_BUCKET"] == "gs://shared-bucket"
    assert env["TERRA_COHORT"] == "source-project.cohort"
    assert env[PROJECT_VAR] == "analysis-project"
    assert env[CREDENTIALS_VAR] == str(credentials.impersonated_key_path(identity, workspace))
    assert env["PATH_HINT"] == "x"


def test_collision_with_caller_variable(service, builder, credentials, identity_service) -> None:
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(make_workspace(), [make_resource("my_bucket")])
    with pytest.raises(EnvironmentCollisionError) as excinfo:
        builder.build(workspace, identity, {"TERRA_MY_BUCKET": "mine"})
    assert excinfo.value.keys == ["TERRA_MY_BUCKET"]
    # nothing was fetched for a command that never launches
    assert identity_service.impersonated_fetches == []


def test_collision_with_platform_variable(service, builder, credentials) -> None:
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(make_workspace(), [])
    with pytest.raises(EnvironmentCollisionError) as excinfo:
        builder.build(workspace, identity, {CREDENTIALS_VAR: "/tmp/key.json", PROJECT_VAR: "other"})
    assert excinfo.value.keys == [CREDENTIALS_VAR, PROJECT_VAR]


def test_resources_mapping_to_same_key_collide(service, builder, credentials) -> None:
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(make_workspace(), [make_resource("data"), make_resource("DATA")])
    with pytest.raises(EnvironmentCollisionError):
        builder.build(workspace, identity)


def test_workspace_without_project_gets_no_platform_variables(service, builder, credentials) -> None:
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(make_workspace(project=None), [make_resource("b")])
    env = builder.build(workspace, identity)
    assert env == {"TERRA_B": "gs://shared-bucket"}
