"""Runtime settings and user configuration for terracli."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from terracli import __version__
from terracli.domain.errors import ValidationError
from terracli.domain.workspace import Server

HOME_ENV = "TERRA_CLI_HOME"
CONTEXT_FILENAME = "context.json"
CONFIG_FILENAME = "config.yaml"
CREDENTIALS_DIRNAME = "credentials"

RUNNERS = ("local", "docker")
BROWSER_MODES = ("auto", "manual")

BUILTIN_SERVERS: Dict[str, Dict[str, str]] = {
    "broad-dev": {
        "description": "Terra development environment",
        "identity_uri": "https://sam.dsde-dev.broadinstitute.org",
        "workspace_uri": "https://workspace.dsde-dev.broadinstitute.org",
    },
    "verily-devel": {
        "description": "Verily development environment",
        "identity_uri": "https://terra-devel-sam.api.verily.com",
        "workspace_uri": "https://terra-devel-wsm.api.verily.com",
    },
}
DEFAULT_SERVER = "broad-dev"


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    log_dir: Path
    cli_version: str = __version__

    @property
    def context_file(self) -> Path:
        return self.home_dir / CONTEXT_FILENAME

    @property
    def credentials_dir(self) -> Path:
        return self.home_dir / CREDENTIALS_DIRNAME

    @property
    def config_file(self) -> Path:
        return self.home_dir / CONFIG_FILENAME


@dataclass
class CliConfig:
    resource_limit: int = 1000
    retry_attempts: int = 5
    retry_initial_wait: float = 1.0
    retry_max_wait: float = 10.0
    command_runner: str = "local"
    docker_image: str = "gcr.io/terra-cli-dev/terra-cli/0.4.0:stable"
    browser: str = "manual"
    servers: Dict[str, Server] = field(default_factory=dict)

    def server(self, name: str) -> Server:
        if name not in self.servers:
            raise ValidationError(f"Unknown server '{name}'. Available: {', '.join(sorted(self.servers))}")
        return self.servers[name]


def _default_home_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".terra-cli"


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(home_dir=base, log_dir=base / "logs")


def _positive(raw: Dict[str, Any], key: str, cast: type, default: Any) -> Any:
    value = raw.get(key, default)
    try:
        value = cast(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"config.yaml: '{key}' must be a {cast.__name__}") from exc
    if value <= 0:
        raise ValidationError(f"config.yaml: '{key}' must be positive")
    return value


def load_config(settings: RuntimeSettings) -> CliConfig:
    raw: Dict[str, Any] = {}
    if settings.config_file.exists():
        try:
            raw = yaml.safe_load(settings.config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ValidationError(f"config.yaml is not valid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValidationError("config.yaml must contain a mapping")

    defaults = CliConfig()
    runner = str(raw.get("command_runner", defaults.command_runner))
    if runner not in RUNNERS:
        raise ValidationError(f"config.yaml: command_runner must be one of {', '.join(RUNNERS)}")
    browser = str(raw.get("browser", defaults.browser))
    if browser not in BROWSER_MODES:
        raise ValidationError(f"config.yaml: browser must be one of {', '.join(BROWSER_MODES)}")

    server_defs: Dict[str, Dict[str, Any]] = {name: dict(entry) for name, entry in BUILTIN_SERVERS.items()}
    extra = raw.get("servers") or {}
    if not isinstance(extra, dict):
        raise ValidationError("config.yaml: servers must be a mapping")
    for name, entry in extra.items():
        if not isinstance(entry, dict) or "identity_uri" not in entry or "workspace_uri" not in entry:
            raise ValidationError(f"config.yaml: server '{name}' needs identity_uri and workspace_uri")
        server_defs[str(name)] = entry

    return CliConfig(
        resource_limit=_positive(raw, "resource_limit", int, defaults.resource_limit),
        retry_attempts=_positive(raw, "retry_attempts", int, defaults.retry_attempts),
        retry_initial_wait=_positive(raw, "retry_initial_wait", float, defaults.retry_initial_wait),
        retry_max_wait=_positive(raw, "retry_max_wait", float, defaults.retry_max_wait),
        command_runner=runner,
        docker_image=str(raw.get("docker_image", defaults.docker_image)),
        browser=browser,
        servers={name: Server.from_dict(name, entry) for name, entry in server_defs.items()},
    )


SETTINGS = load_settings()
