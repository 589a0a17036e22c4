"""Tests for the single-listener controller."""

from __future__ import annotations

from pathlib import Path

import pytest

from vaultsync import controller as controller_module
from vaultsync.controller import SyncController
from vaultsync.errors import NetworkError, ServiceStateError
from vaultsync.notify import RecordingNotifier
from vaultsync.sync.client import SyncResult
from vaultsync.sync.service import ServiceState
from vaultsync.sync.workspace import SyncSettings


class FakeService:
    """Stands in for SyncService without binding a socket."""

    start_result = True
    instances = []

    def __init__(self, workspace, notifier=None, on_stopped=None):
        self.workspace = workspace
        self.on_stopped = on_stopped
        self.state = ServiceState.IDLE
        self.last_error = "port in use"
        FakeService.instances.append(self)

    def start(self) -> bool:
        if self.start_result:
            self.state = ServiceState.LISTENING
        return self.start_result

    def stop(self, reason: str = "") -> bool:
        if self.state != ServiceState.LISTENING:
            return False
        self.state = ServiceState.IDLE
        self.stop_reason = reason
        if self.on_stopped:
            self.on_stopped(self)
        return True

    def status(self):
        return {"state": self.state.value, "remaining": 12.0}


@pytest.fixture
def controller(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> SyncController:
    FakeService.instances = []
    FakeService.start_result = True
    monkeypatch.setattr(controller_module, "SyncService", FakeService)
    monkeypatch.setattr(controller_module, "local_ipv4", lambda *a, **k: "192.168.1.42")
    return SyncController(tmp_path, SyncSettings(), notifier=RecordingNotifier(["17"]))


def test_start_listening_returns_pairing_code(controller: SyncController):
    code = controller.start_listening()

    assert code == "42"
    assert controller.listening
    assert "Your sync code is: 42" in controller.notifier.messages


def test_second_start_is_rejected_and_first_keeps_running(controller: SyncController):
    controller.start_listening()
    first = controller.service

    with pytest.raises(ServiceStateError):
        controller.start_listening()

    assert controller.service is first
    assert first.state == ServiceState.LISTENING
    assert len(FakeService.instances) == 1


def test_slot_clears_when_listener_stops(controller: SyncController):
    controller.start_listening()

    controller.service.stop(reason="30s Timeout")

    assert controller.service is None
    assert controller.pairing_code is None
    assert controller.start_listening() == "42"


def test_stop_listening_when_idle_raises(controller: SyncController):
    with pytest.raises(ServiceStateError):
        controller.stop_listening()


def test_failed_start_leaves_slot_empty(controller: SyncController):
    FakeService.start_result = False

    with pytest.raises(NetworkError, match="port in use"):
        controller.start_listening()

    assert controller.service is None


def test_connect_prompts_for_missing_code(controller: SyncController, monkeypatch: pytest.MonkeyPatch):
    seen = []

    def fake_sync(self, code):
        seen.append(code)
        return SyncResult(success=True, message="pulled 0, pushed 0")

    monkeypatch.setattr(controller_module.SyncClient, "sync_with_peer", fake_sync)

    result = controller.connect()

    assert result.success
    assert seen == ["17"]
    assert "Sync complete: pulled 0, pushed 0" in controller.notifier.messages


def test_shutdown_stops_active_listener(controller: SyncController):
    controller.start_listening()
    service = controller.service

    controller.shutdown()

    assert service.stop_reason == "shutdown"
    assert controller.service is None


def test_status_reports_listener_and_baseline(controller: SyncController):
    controller.start_listening()

    status = controller.status()

    assert status["listening"] is True
    assert status["pairing_code"] == "42"
    assert status["port"] == 56780
    assert status["baseline_files"] == 0
    assert status["last_sync"] is None
