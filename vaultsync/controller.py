"""Top-level owner of the one sync listener a process may run."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .discovery import local_ipv4, pairing_code
from .errors import NetworkError, ServiceStateError
from .notify import Notifier
from .sync.client import SyncClient, SyncResult, Transport
from .sync.engine import SyncPlan
from .sync.service import ServiceState, SyncService
from .sync.workspace import SyncSettings, SyncWorkspace

logger = logging.getLogger("vaultsync.controller")


class SyncController:
    """Starts, stops and connects; holds at most one listener.

    Starting while a listener is active is rejected with ServiceStateError and
    leaves the running listener untouched. The slot empties itself when the
    listener stops, whether by timeout or by request.
    """

    def __init__(
        self,
        vault_dir: Path,
        settings: SyncSettings,
        notifier: Optional[Notifier] = None,
        transport: Optional[Transport] = None,
    ):
        self.settings = settings
        self.workspace = SyncWorkspace(vault_dir, settings)
        self.notifier = notifier
        self.transport = transport
        self._service: Optional[SyncService] = None
        self._lock = threading.Lock()
        self.pairing_code: Optional[str] = None

    @property
    def service(self) -> Optional[SyncService]:
        return self._service

    @property
    def listening(self) -> bool:
        service = self._service
        return service is not None and service.state == ServiceState.LISTENING

    def start_listening(self) -> str:
        """Start the listener and return the pairing code to show the user."""
        with self._lock:
            if self._service is not None:
                raise ServiceStateError(
                    f"Sync listener already running on port {self.settings.port}; stop it first"
                )

            address = local_ipv4(
                self.settings.preferred_interfaces,
                include_loopback=self.settings.include_loopback,
            )
            service = SyncService(
                self.workspace,
                notifier=self.notifier,
                on_stopped=self._release,
            )
            if not service.start():
                raise NetworkError(f"Could not start sync listener: {service.last_error}")
            self._service = service
            self.pairing_code = pairing_code(address)

        logger.info("Listening as %s (code %s)", address, self.pairing_code)
        self._notify(f"Your sync code is: {self.pairing_code}", duration=self.settings.session_timeout)
        return self.pairing_code

    def _release(self, service: SyncService) -> None:
        with self._lock:
            if self._service is service:
                self._service = None
                self.pairing_code = None

    def stop_listening(self) -> None:
        service = self._service
        if service is None or not service.stop():
            raise ServiceStateError("Sync listener is not running")

    def _client(self) -> SyncClient:
        return SyncClient(self.workspace, transport=self.transport)

    def connect(self, code: Optional[str] = None) -> SyncResult:
        """Sync with the peer showing ``code``; prompts for it when omitted."""
        if code is None:
            if self.notifier is None:
                raise ServiceStateError("No pairing code given")
            code = self.notifier.prompt("Enter the sync code shown on the other device:")

        result = self._client().sync_with_peer(code)
        if result.success:
            self._notify(f"Sync complete: {result.message}")
        else:
            self._notify(result.message)
        return result

    def preview(self, code: str) -> SyncPlan:
        client = self._client()
        address = client.resolve(code)
        return client.preview(address.url(self.settings.port))

    def shutdown(self) -> None:
        """Process exit hook: close any listener still running."""
        service = self._service
        if service is not None and service.state == ServiceState.LISTENING:
            service.stop(reason="shutdown")

    def status(self) -> Dict[str, Any]:
        service = self._service
        baseline = self.workspace.baseline
        return {
            "vault_dir": str(self.workspace.vault_dir),
            "listening": self.listening,
            "pairing_code": self.pairing_code,
            "service": service.status() if service else None,
            "port": self.settings.port,
            "conflict_strategy": self.settings.conflict_strategy,
            "baseline_files": len(baseline.load()),
            "last_sync": baseline.saved_at(),
        }

    def _notify(self, message: str, duration: Optional[float] = None) -> None:
        if self.notifier is not None:
            self.notifier.notify(message, duration=duration)


__all__ = ["SyncController"]
