"""Tests for the last-sync baseline store."""

from __future__ import annotations

from pathlib import Path

from vaultsync.sync.baseline import BaselineStore
from vaultsync.sync.snapshot import Snapshot
from vaultsync.vault import JSONStateStore


def _store(tmp_path: Path) -> BaselineStore:
    return BaselineStore(JSONStateStore(tmp_path / ".vaultsync" / "baseline.json"))


def test_missing_baseline_loads_empty(tmp_path: Path):
    store = _store(tmp_path)

    assert len(store.load()) == 0
    assert store.saved_at() is None


def test_save_then_load_returns_same_hashes(tmp_path: Path):
    store = _store(tmp_path)
    snapshot = Snapshot(files={"a.md": "h1", "dir/b.md": "h2"})

    store.save(snapshot)

    assert store.load().files == snapshot.files
    assert store.saved_at() is not None


def test_save_replaces_previous_baseline(tmp_path: Path):
    store = _store(tmp_path)
    store.save(Snapshot(files={"old.md": "h0"}))

    store.save(Snapshot(files={"new.md": "h1"}))

    assert store.load().files == {"new.md": "h1"}


def test_corrupt_baseline_is_treated_as_empty(tmp_path: Path):
    store = _store(tmp_path)
    store.state_store.path.parent.mkdir(parents=True)
    store.state_store.path.write_text("{not json", encoding="utf-8")

    assert len(store.load()) == 0


def test_malformed_baseline_structure_is_treated_as_empty(tmp_path: Path):
    store = _store(tmp_path)
    store.state_store.path.parent.mkdir(parents=True)
    store.state_store.path.write_text('{"hashes": {"a.md": "h"}}', encoding="utf-8")

    assert len(store.load()) == 0

    store.state_store.path.write_text('{"hashes": [{"path": "a.md"}]}', encoding="utf-8")
    assert len(store.load()) == 0


def test_clear_forgets_baseline(tmp_path: Path):
    store = _store(tmp_path)
    store.save(Snapshot(files={"a.md": "h1"}))

    store.clear()

    assert len(store.load()) == 0
