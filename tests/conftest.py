"""Shared fixtures for vaultsync tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import pytest

from vaultsync.sync.workspace import SyncSettings, SyncWorkspace


def write_files(root: Path, files: dict) -> None:
    for rel_path, content in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        data = content.encode("utf-8") if isinstance(content, str) else content
        target.write_bytes(data)


@pytest.fixture
def make_workspace(tmp_path: Path) -> Callable[..., SyncWorkspace]:
    """Build a workspace rooted at ``tmp_path / name`` seeded with ``files``."""

    def _make(name: str, files: Optional[dict] = None, **overrides) -> SyncWorkspace:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        write_files(root, files or {})
        return SyncWorkspace(root, SyncSettings(**overrides))

    return _make
