from __future__ import annotations

import json

import pytest

from terracli.app.context_store import ContextStore
from terracli.domain.errors import SystemInternalError
from terracli.settings import RuntimeSettings
from terracli.utils.telemetry import iter_events

from _fakes import make_workspace


@pytest.fixture()
def store(runtime_settings: RuntimeSettings) -> ContextStore:
    return ContextStore(runtime_settings, default_server="broad-dev")


def test_load_creates_defaults(store: ContextStore, runtime_settings: RuntimeSettings) -> None:
    context = store.load()
    assert context.server == "broad-dev"
    assert context.workspace is None
    assert context.identity_key is None
    assert json.loads(runtime_settings.context_file.read_text(encoding="utf-8"))["version"] == 1


def test_save_then_load(store: ContextStore) -> None:
    workspace = make_workspace()
    store.save(store.load().with_workspace(workspace))
    assert store.load().workspace == workspace


def test_override_is_never_persisted(store: ContextStore) -> None:
    w1 = make_workspace("ws-one")
    w2 = make_workspace("ws-two")
    persisted = store.update(workspace=w1)
    override = store.with_override(persisted, w2)
    assert override.workspace == w2
    assert override.transient
    with pytest.raises(SystemInternalError):
        store.save(override)
    assert store.load().workspace == w1


def test_update_applies_changes(store: ContextStore) -> None:
    store.update(identity_key="abc")
    context = store.update(server="verily-devel")
    assert context.identity_key == "abc"
    assert store.load().server == "verily-devel"


def test_save_leaves_no_temp_files(store: ContextStore, runtime_settings: RuntimeSettings) -> None:
    for index in range(3):
        store.update(identity_key=f"key-{index}")
    leftovers = [path.name for path in runtime_settings.home_dir.iterdir() if path.name.startswith(".context")]
    assert leftovers == []


def test_corrupt_file_falls_back_to_defaults(
    store: ContextStore, runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TERRA_CLI_TELEMETRY", "1")
    runtime_settings.context_file.write_text("{truncated", encoding="utf-8")
    context = store.load()
    assert context.server == "broad-dev"
    events = [event["event"] for event in iter_events(runtime_settings)]
    assert "context.corrupt" in events
    assert json.loads(runtime_settings.context_file.read_text(encoding="utf-8"))["server"] == "broad-dev"
