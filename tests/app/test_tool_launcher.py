from __future__ import annotations

import sys
from pathlib import Path

import pytest

from terracli.app.credentials import CredentialStore
from terracli.app.environment import CREDENTIALS_VAR, CommandEnvironmentBuilder
from terracli.app.resources import ResourceRegistry
from terracli.app.runner import CONTAINER_KEY_PATH, DockerRunner, LocalProcessRunner, ToolLauncher, runner_for
from terracli.domain.errors import EnvironmentCollisionError, PassthroughError, ValidationError
from terracli.settings import CliConfig

from _fakes import (
    FakeAccessChecker,
    FakeIdentityService,
    FakeRefresher,
    FakeRunner,
    FakeWorkspaceService,
    make_resource,
    make_workspace,
    user_credential,
)


@pytest.fixture()
def setup(runtime_settings):
    service = FakeWorkspaceService()
    credentials = CredentialStore(runtime_settings, FakeRefresher(), lambda provider: FakeIdentityService())
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(make_workspace(), [make_resource("my_bucket")])
    builder = CommandEnvironmentBuilder(ResourceRegistry(service, FakeAccessChecker()), credentials)
    return builder, identity, workspace


def test_successful_run_passes_environment(setup) -> None:
    builder, identity, workspace = setup
    runner = FakeRunner(exit_code=0)
    ToolLauncher(builder, runner).execute(workspace, identity, ["gsutil", "ls", "$TERRA_MY_BUCKET"])
    command, env = runner.runs[0]
    assert command == ["gsutil", "ls", "$TERRA_MY_BUCKET"]
    assert env["TERRA_MY_BUCKET"] == "gs://shared-bucket"


def test_non_zero_exit_is_passed_through(setup) -> None:
    builder, identity, workspace = setup
    with pytest.raises(PassthroughError) as excinfo:
        ToolLauncher(builder, FakeRunner(exit_code=7)).execute(workspace, identity, ["false"])
    assert excinfo.value.exit_code == 7


def test_collision_prevents_launch(setup) -> None:
    builder, identity, workspace = setup
    runner = FakeRunner()
    with pytest.raises(EnvironmentCollisionError):
        ToolLauncher(builder, runner).execute(workspace, identity, ["env"], {"TERRA_MY_BUCKET": "x"})
    assert runner.runs == []


def test_empty_command_rejected(setup) -> None:
    builder, identity, workspace = setup
    with pytest.raises(ValidationError):
        ToolLauncher(builder, FakeRunner()).execute(workspace, identity, [])


def test_local_runner_merges_parent_environment() -> None:
    script = "import os, sys; sys.exit(0 if os.environ['TERRA_X'] == 'gs://b' and os.environ.get('PATH') else 3)"
    assert LocalProcessRunner().run([sys.executable, "-c", script], {"TERRA_X": "gs://b"}) == 0
    assert LocalProcessRunner().run([sys.executable, "-c", "import sys; sys.exit(4)"], {}) == 4


def test_docker_runner_mounts_key_read_only(tmp_path: Path) -> None:
    runner = DockerRunner("terra/tools:1", workdir=tmp_path)
    args = runner.build_command(
        ["bq", "ls"], {"TERRA_DS": "p.d", CREDENTIALS_VAR: "/home/u/.terra-cli/key.json"}
    )
    assert args[:4] == ["docker", "run", "--rm", "-i"]
    assert f"{CREDENTIALS_VAR}={CONTAINER_KEY_PATH}" in args
    assert "TERRA_DS=p.d" in args
    assert f"/home/u/.terra-cli/key.json:{CONTAINER_KEY_PATH}:ro" in args
    assert args[-3:] == ["terra/tools:1", "bq", "ls"]


def test_runner_selection() -> None:
    assert isinstance(runner_for(CliConfig(command_runner="docker")), DockerRunner)
    assert isinstance(runner_for(CliConfig()), LocalProcessRunner)


def _launch_parts(runtime_settings):
    service = FakeWorkspaceService()
    credentials = CredentialStore(runtime_settings, FakeRefresher(), lambda provider: FakeIdentityService())
    identity = credentials.login(user_credential())
    workspace = service.add_workspace(make_workspace(), [make_resource("my_bucket")])
    builder = CommandEnvironmentBuilder(ResourceRegistry(service, FakeAccessChecker()), credentials)
    return credentials, builder, identity, workspace


def test_scoped_run_drops_service_identity_key_after_exit(runtime_settings) -> None:
    credentials, builder, identity, workspace = _launch_parts(runtime_settings)
    seen = []

    class KeyCheckingRunner(FakeRunner):
        def run(self, command, env):
            seen.append(Path(env[CREDENTIALS_VAR]).exists())
            return super().run(command, env)

    launcher = ToolLauncher(builder, KeyCheckingRunner(exit_code=5), credentials=credentials)
    with pytest.raises(PassthroughError):
        launcher.execute(workspace, identity, ["gsutil", "ls"], scoped=True)
    assert seen == [True]
    assert not credentials.impersonated_key_path(identity, workspace).exists()


def test_unscoped_run_keeps_service_identity_key(runtime_settings) -> None:
    credentials, builder, identity, workspace = _launch_parts(runtime_settings)
    ToolLauncher(builder, FakeRunner(), credentials=credentials).execute(workspace, identity, ["true"])
    assert credentials.impersonated_key_path(identity, workspace).exists()
