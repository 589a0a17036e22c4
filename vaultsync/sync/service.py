"""Short-lived sync listener built on Starlette and uvicorn."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from .protocol import CHANGES_PATH, HASHES_PATH, HEALTH_PATH, FileChange
from .routes import changes_handler, hashes_handler, health_handler
from .workspace import ApplyReport, SyncWorkspace

if TYPE_CHECKING:
    from ..notify import Notifier

logger = logging.getLogger("vaultsync.sync.service")

STARTUP_WAIT_SECONDS = 5.0


class ServiceState(str, Enum):
    """Listener lifecycle states."""
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class SyncService:
    """Serves GET /hashes and POST /changes for a fixed session lifetime.

    The session timer is flat: traffic does not extend it. When it fires the
    listener stops accepting connections and requests already in flight are
    allowed to finish.
    """

    workspace: SyncWorkspace
    notifier: Optional["Notifier"] = None
    on_stopped: Optional[Callable[["SyncService"], None]] = None

    # Server state
    _state: ServiceState = field(default=ServiceState.IDLE, init=False)
    _server: Optional[Any] = field(default=None, init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False)
    _timer: Optional[threading.Timer] = field(default=None, init=False)
    _state_lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _started_at: Optional[float] = field(default=None, init=False)
    last_error: Optional[str] = field(default=None, init=False)

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def settings(self):
        return self.workspace.settings

    @property
    def host(self) -> str:
        return self.settings.host

    @property
    def port(self) -> int:
        return self.settings.port

    @property
    def session_timeout(self) -> float:
        return float(self.settings.session_timeout)

    def create_app(self) -> Starlette:
        """Build the ASGI app; usable on its own with a test client."""
        routes = [
            Route(HEALTH_PATH, health_handler, methods=["GET"]),
            Route(HASHES_PATH, hashes_handler, methods=["GET"]),
            Route(CHANGES_PATH, changes_handler, methods=["POST"]),
        ]
        middleware = [
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "POST"],
                allow_headers=["*"],
            )
        ]
        app = Starlette(routes=routes, middleware=middleware)
        app.state.sync_service = self
        return app

    def accept_changes(self, changes: List[FileChange]) -> ApplyReport:
        """Apply a peer's files, then persist what is on disk as the baseline."""
        with self.workspace.write_lock:
            report = self.workspace.apply_files(changes)
            self.workspace.refresh_baseline()

        logger.info(
            "Accepted changes: %d written, %d unchanged, %d failed",
            len(report.written),
            len(report.unchanged),
            len(report.failed),
        )
        if self.notifier and (report.written or report.failed):
            message = f"Received {len(report.written)} changed file(s) from peer"
            if report.failed:
                message += f"; {len(report.failed)} could not be written"
            self.notifier.notify(message)
        return report

    def start(self) -> bool:
        """Bind the port in a background thread and arm the session timer.

        Returns:
            True once the socket is accepting connections.
        """
        with self._state_lock:
            if self._state in (ServiceState.STARTING, ServiceState.LISTENING):
                logger.warning("Sync listener is already running")
                return False
            self._state = ServiceState.STARTING
            self.last_error = None

        config = uvicorn.Config(
            self.create_app(),
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._run_in_thread,
            daemon=True,
            name="vaultsync-listener",
        )
        self._thread.start()

        deadline = time.monotonic() + STARTUP_WAIT_SECONDS
        while time.monotonic() < deadline:
            if self._server.started or not self._thread.is_alive():
                break
            time.sleep(0.05)

        if not self._server.started:
            self._server.should_exit = True
            self._state = ServiceState.ERROR
            self.last_error = self.last_error or f"could not listen on {self.host}:{self.port}"
            logger.error("Sync listener failed to start: %s", self.last_error)
            return False

        self._started_at = time.monotonic()
        self._timer = threading.Timer(self.session_timeout, self._expire)
        self._timer.daemon = True
        self._timer.start()
        self._state = ServiceState.LISTENING
        logger.info(
            "Sync listener on %s:%s for %ss",
            self.host,
            self.port,
            f"{self.session_timeout:g}",
        )
        return True

    def _run_in_thread(self) -> None:
        """Run the server in a background thread."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._server.serve())
        except (Exception, SystemExit) as e:
            # uvicorn exits the thread via SystemExit when the bind fails
            self.last_error = str(e) or type(e).__name__
            logger.error("Sync listener thread error: %s", self.last_error)
        finally:
            loop.close()

    def _expire(self) -> None:
        logger.info("Sync session timed out after %ss", f"{self.session_timeout:g}")
        self.stop(reason=f"{self.session_timeout:g}s Timeout")

    def stop(self, reason: str = "") -> bool:
        """Stop accepting connections; in-flight requests finish first.

        Returns:
            True if a running listener was stopped.
        """
        with self._state_lock:
            if self._state != ServiceState.LISTENING:
                logger.warning("Sync listener is not running")
                return False
            self._state = ServiceState.STOPPING

        current = threading.current_thread()
        if self._timer is not None and self._timer is not current:
            self._timer.cancel()

        if self._server is not None:
            self._server.should_exit = True

        if self._thread is not None and self._thread.is_alive() and self._thread is not current:
            self._thread.join(timeout=self.settings.request_timeout + 5.0)

        self._state = ServiceState.IDLE
        self._server = None
        self._thread = None
        self._timer = None
        self._started_at = None

        message = "Closed sync server"
        if reason:
            message += f" - Reason: {reason}"
        logger.info(message)
        if self.notifier:
            self.notifier.notify(message, duration=6)
        if self.on_stopped:
            self.on_stopped(self)
        return True

    def remaining(self) -> Optional[float]:
        """Seconds left in the session, or None when idle."""
        if self._started_at is None:
            return None
        return max(0.0, self.session_timeout - (time.monotonic() - self._started_at))

    def status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "host": self.host,
            "port": self.port,
            "session_timeout": self.session_timeout,
            "remaining": self.remaining(),
            "error": self.last_error,
        }


__all__ = ["ServiceState", "SyncService"]
