"""Launch tools locally or in a container and propagate their exit code."""

from __future__ import annotations

import os
import subprocess
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Mapping, Sequence

from terracli.app.credentials import CredentialStore
from terracli.app.environment import CREDENTIALS_VAR, CommandEnvironmentBuilder
from terracli.domain.errors import PassthroughError, ValidationError
from terracli.domain.identity import Identity
from terracli.domain.workspace import Workspace
from terracli.settings import CliConfig, RuntimeSettings
from terracli.utils.telemetry import record_structured_event

CONTAINER_KEY_PATH = "/usr/local/etc/terra/service-identity.json"
CONTAINER_WORKDIR = "/workspace"


class CommandRunner(ABC):
    name = "runner"

    @abstractmethod
    def run(self, command: Sequence[str], env: Mapping[str, str]) -> int:
        """Block until the tool exits; stdout/stderr stream straight through."""


class LocalProcessRunner(CommandRunner):
    name = "local"

    def run(self, command: Sequence[str], env: Mapping[str, str]) -> int:
        merged = dict(os.environ)
        merged.update(env)
        completed = subprocess.run(list(command), env=merged, check=False)
        return completed.returncode


class DockerRunner(CommandRunner):
    name = "docker"

    def __init__(self, image: str, docker: str = "docker", workdir: Path | None = None) -> None:
        self._image = image
        self._docker = docker
        self._workdir = workdir

    def build_command(self, command: Sequence[str], env: Mapping[str, str]) -> List[str]:
        args = [self._docker, "run", "--rm", "-i"]
        key_file = env.get(CREDENTIALS_VAR)
        for key, value in sorted(env.items()):
            if key == CREDENTIALS_VAR:
                value = CONTAINER_KEY_PATH
            args.extend(["-e", f"{key}={value}"])
        if key_file:
            args.extend(["-v", f"{key_file}:{CONTAINER_KEY_PATH}:ro"])
        workdir = self._workdir or Path.cwd()
        args.extend(["-v", f"{workdir}:{CONTAINER_WORKDIR}", "-w", CONTAINER_WORKDIR, self._image])
        args.extend(command)
        return args

    def run(self, command: Sequence[str], env: Mapping[str, str]) -> int:
        completed = subprocess.run(self.build_command(command, env), check=False)
        return completed.returncode


def runner_for(config: CliConfig) -> CommandRunner:
    if config.command_runner == "docker":
        return DockerRunner(config.docker_image)
    return LocalProcessRunner()


class ToolLauncher:
    def __init__(
        self,
        builder: CommandEnvironmentBuilder,
        runner: CommandRunner,
        settings: RuntimeSettings | None = None,
        credentials: CredentialStore | None = None,
    ) -> None:
        self._builder = builder
        self._runner = runner
        self._settings = settings
        self._credentials = credentials

    def execute(
        self,
        workspace: Workspace,
        identity: Identity,
        command: Sequence[str],
        extra_vars: Mapping[str, str] | None = None,
        *,
        scoped: bool = False,
    ) -> None:
        """Run ``command`` against ``workspace``.

        ``scoped`` marks a workspace that is not the current one: its service
        identity key only lives for this run and is dropped once the tool exits.
        """

        if not command:
            raise ValidationError("No command given to execute")
        try:
            env = self._builder.build(workspace, identity, extra_vars)
            started = time.perf_counter()
            code = self._runner.run(command, env)
        finally:
            if scoped and self._credentials is not None:
                self._credentials.invalidate(identity, workspace)
        if self._settings is not None:
            record_structured_event(
                self._settings,
                "app.execute",
                payload={"tool": command[0], "runner": self._runner.name, "exit_code": code, "workspace": workspace.id},
                level="info" if code == 0 else "warn",
                status="ok" if code == 0 else "failed",
                component="runner",
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        if code != 0:
            raise PassthroughError(code)


__all__ = ["CommandRunner", "DockerRunner", "LocalProcessRunner", "ToolLauncher", "runner_for"]
