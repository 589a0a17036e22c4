"""Tests for the /status slash command."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from rich.text import Text

from vaultsync.app import build_router
from vaultsync.configuration import ConfigurationBundle


def _plain(output: str) -> str:
    # render_rich forces a terminal, so numbers and paths carry highlight codes
    return Text.from_ansi(output).plain


def _controller(listening: bool = False) -> SimpleNamespace:
    return SimpleNamespace(
        status=lambda: {
            "listening": listening,
            "pairing_code": "42" if listening else None,
            "port": 56780,
            "conflict_strategy": "remote_wins",
            "baseline_files": 3,
            "last_sync": None,
        }
    )


@pytest.fixture(autouse=True)
def wide_terminal(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("COLUMNS", "120")


@pytest.fixture
def router(tmp_path: Path):
    config = ConfigurationBundle(vault_dir=tmp_path, status="ready")
    return build_router(config, _controller())


def test_status_renders_sections(router):
    output = _plain(router.handle("status", []))

    assert "Runtime Status" in output
    assert "No diagnostics reported." in output
    assert "Sync" in output
    assert "3 files" in output


def test_status_limits_to_requested_section(router):
    output = _plain(router.handle("status", ["sync"]))

    assert "Runtime Status" not in output
    assert "closed" in output
    assert "(never)" in output


def test_status_shows_pairing_code_while_listening(tmp_path: Path):
    router = build_router(ConfigurationBundle(vault_dir=tmp_path, status="ready"), _controller(True))

    assert "open (code 42)" in _plain(router.handle("status", ["listener"]))


def test_status_without_controller(tmp_path: Path):
    router = build_router(ConfigurationBundle(vault_dir=tmp_path, status="ready"))

    assert "Sync controller not initialized." in _plain(router.handle("status", ["sync"]))


def test_status_truncates_long_diagnostics(tmp_path: Path):
    config = ConfigurationBundle(vault_dir=tmp_path, status="invalid")
    config.diagnostics = [
        SimpleNamespace(level="warning", message=f"issue {i}", source=None) for i in range(8)
    ]
    router = build_router(config)

    output = _plain(router.handle("status", ["diag"]))
    assert "Showing 5/8" in output
    assert "issue 4" in output
    assert "issue 5" not in output

    full = _plain(router.handle("status", ["diag", "--all"]))
    assert "issue 7" in full
    assert "Showing" not in full
