"""Tests for vault path handling and persisted JSON state."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from vaultsync.errors import VaultIOError
from vaultsync.vault import FileVault, JSONStateStore, normalize_path


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("note.md", "note.md"),
        ("notes\\daily\\today.md", "notes/daily/today.md"),
        ("./notes//a.md", "notes/a.md"),
    ],
)
def test_normalize_path_accepts_relative_paths(raw: str, expected: str):
    assert normalize_path(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "/etc/passwd", "C:/x.md", "../outside.md", "a/../../b.md", "."])
def test_normalize_path_rejects_unsafe_paths(raw: str):
    with pytest.raises(ValueError):
        normalize_path(raw)


def test_write_bytes_creates_parent_directories(tmp_path: Path):
    vault = FileVault(tmp_path)

    vault.write_bytes("a/b/c.md", b"deep")

    assert (tmp_path / "a" / "b" / "c.md").read_bytes() == b"deep"
    assert vault.exists("a/b/c.md")
    assert vault.list_files() == ["a/b/c.md"]


def test_read_missing_file_raises_vault_io_error(tmp_path: Path):
    with pytest.raises(VaultIOError) as excinfo:
        FileVault(tmp_path).read_bytes("missing.md")
    assert excinfo.value.path == "missing.md"


def test_write_outside_vault_is_refused(tmp_path: Path):
    vault = FileVault(tmp_path / "vault")

    with pytest.raises(VaultIOError):
        vault.write_bytes("../escape.md", b"x")
    assert not (tmp_path / "escape.md").exists()


def test_write_into_ignored_directory_is_refused(tmp_path: Path):
    vault = FileVault(tmp_path, ignored_dirs=[".vaultsync", ".sync_backups"])

    for path in (".vaultsync/config/99-peer.yml", ".vaultsync/baseline.json", ".sync_backups/a.md"):
        with pytest.raises(VaultIOError):
            vault.write_bytes(path, b"x")

    assert not (tmp_path / ".vaultsync").exists()
    assert not (tmp_path / ".sync_backups").exists()
    vault.write_bytes(".vaultsync-notes.md", b"ok")
    assert vault.exists(".vaultsync-notes.md")


def test_state_store_round_trip(tmp_path: Path):
    store = JSONStateStore(tmp_path / "state" / "doc.json")
    assert store.load_json() is None

    store.save_json({"value": 1})

    assert store.load_json() == {"value": 1}
    store.clear()
    assert store.load_json() is None
    store.clear()


def test_state_store_keeps_previous_file_when_replace_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    target = tmp_path / "doc.json"
    store = JSONStateStore(target)
    store.save_json({"generation": 1})

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", failing_replace)

    with pytest.raises(OSError):
        store.save_json({"generation": 2})

    monkeypatch.undo()
    assert store.load_json() == {"generation": 1}
    assert sorted(p.name for p in tmp_path.iterdir()) == ["doc.json"]
