from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
TESTS = Path(__file__).resolve().parent
SANDBOX_HOME = ROOT / ".test_place" / "terra-home"
os.environ.setdefault("TERRA_CLI_HOME", str(SANDBOX_HOME))
os.environ.setdefault("TERRA_CLI_TELEMETRY", "0")
for path in (SRC, TESTS):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from terracli.settings import RuntimeSettings  # noqa: E402


@pytest.fixture()
def runtime_settings(tmp_path: Path) -> RuntimeSettings:
    home = tmp_path / "terra-home"
    home.mkdir(parents=True, exist_ok=True)
    return RuntimeSettings(home_dir=home, log_dir=home / "logs")
