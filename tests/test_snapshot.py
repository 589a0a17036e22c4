"""Tests for content digests and vault snapshots."""

from __future__ import annotations

from pathlib import Path

import pytest

from vaultsync.errors import VaultIOError
from vaultsync.sync.snapshot import FileEntry, Snapshot, SnapshotBuilder, compute_digest
from vaultsync.vault import FileVault

from conftest import write_files


def test_compute_digest_matches_known_vectors():
    assert compute_digest(b"") == "2jmj7l5rSw0yVb/vlWAYkK/YBwk="
    assert compute_digest(b"hello") == "qvTGHdzF6KLavt4PO0gs2a6pQ00="


def test_compute_digest_is_sensitive_to_every_byte():
    assert compute_digest(b"line\n") != compute_digest(b"line\r\n")
    assert compute_digest(b"note") == compute_digest(b"note")


def test_build_lists_every_file_once(tmp_path: Path):
    write_files(
        tmp_path,
        {
            "a.md": "alpha",
            "notes/b.md": "beta",
            "notes/deep/c.bin": b"\x00\x01\x02",
            "empty.md": "",
        },
    )

    snapshot = SnapshotBuilder(FileVault(tmp_path)).build()

    assert sorted(snapshot) == ["a.md", "empty.md", "notes/b.md", "notes/deep/c.bin"]
    assert snapshot["notes/deep/c.bin"] == compute_digest(b"\x00\x01\x02")
    assert snapshot["empty.md"] == "2jmj7l5rSw0yVb/vlWAYkK/YBwk="


def test_build_skips_excluded_and_state_directories(tmp_path: Path):
    write_files(
        tmp_path,
        {
            "keep.md": "x",
            "scratch.tmp": "x",
            "sub/.DS_Store": "x",
            ".vaultsync/baseline.json": "{}",
            ".sync_backups/keep_20240101_000000.md": "old",
        },
    )
    vault = FileVault(
        tmp_path,
        exclude_patterns=["*.tmp", ".DS_Store"],
        ignored_dirs=[".vaultsync", ".sync_backups"],
    )

    assert SnapshotBuilder(vault).build().files == {"keep.md": compute_digest(b"x")}


def test_build_on_empty_vault_is_empty(tmp_path: Path):
    assert len(SnapshotBuilder(FileVault(tmp_path)).build()) == 0


def test_build_propagates_read_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    write_files(tmp_path, {"a.md": "alpha", "b.md": "beta"})
    vault = FileVault(tmp_path)

    def broken_read(path: str) -> bytes:
        raise VaultIOError(path, "permission denied")

    monkeypatch.setattr(vault, "read_bytes", broken_read)

    with pytest.raises(VaultIOError):
        SnapshotBuilder(vault).build()


def test_build_with_content_keeps_bytes_matching_digests(tmp_path: Path):
    write_files(tmp_path, {"a.md": "alpha", "dir/b.md": "beta"})

    snapshot, contents = SnapshotBuilder(FileVault(tmp_path)).build_with_content()

    assert set(contents) == set(snapshot)
    for path, data in contents.items():
        assert compute_digest(data) == snapshot[path]


def test_snapshot_records_are_sorted_entries():
    snapshot = Snapshot(files={"b.md": "h2", "a.md": "h1"})

    assert snapshot.entries() == [FileEntry("a.md", "h1"), FileEntry("b.md", "h2")]
    assert Snapshot.from_records(snapshot.to_records()).files == snapshot.files
