"""Sync client: fetch a peer's files, reconcile, and push local changes back."""

from __future__ import annotations

import http.client
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..discovery import PairingAddress, local_ipv4, resolve_peer_address
from ..errors import NetworkError, SyncError, VaultIOError
from .engine import ConflictRecord, SyncPlan, compute_decisions
from .protocol import (
    CHANGES_PATH,
    HASHES_PATH,
    FileChange,
    RemoteFileRecord,
    decode_hashes,
    encode_changes,
)
from .workspace import SyncWorkspace

logger = logging.getLogger("vaultsync.sync.client")

# (method, url, body, timeout) -> (status, body)
Transport = Callable[[str, str, Optional[bytes], float], Tuple[int, bytes]]


def urllib_transport(
    method: str,
    url: str,
    body: Optional[bytes],
    timeout: float,
) -> Tuple[int, bytes]:
    """Plain HTTP over urllib. Only connection-level problems raise."""
    headers = {"Content-Type": "application/json"} if body is not None else {}
    req = Request(url, data=body, headers=headers, method=method)
    try:
        with urlopen(req, timeout=timeout) as resp:
            return resp.status, resp.read()
    except HTTPError as e:
        return e.code, e.read()
    except URLError as e:
        raise NetworkError(f"Connection error: {e.reason}") from e
    except (OSError, http.client.HTTPException) as e:
        raise NetworkError(f"Connection error: {e}") from e


@dataclass
class SyncResult:
    """Result of a sync operation."""

    success: bool
    peer: str = ""
    pulled: List[str] = field(default_factory=list)
    pushed: List[str] = field(default_factory=list)
    skipped: int = 0
    conflicts: List[ConflictRecord] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
    backups: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "peer": self.peer,
            "pulled": self.pulled,
            "pushed": self.pushed,
            "skipped": self.skipped,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "unresolved": self.unresolved,
            "backups": self.backups,
            "errors": self.errors,
            "message": self.message,
        }

    def summary(self) -> str:
        parts = [f"pulled {len(self.pulled)}", f"pushed {len(self.pushed)}"]
        if self.conflicts:
            parts.append(f"{len(self.conflicts)} conflicts")
        if self.unresolved:
            parts.append(f"{len(self.unresolved)} left for manual resolution")
        if self.errors:
            parts.append(f"{len(self.errors)} errors")
        return ", ".join(parts)


class SyncClient:
    """Initiator side of a sync with a peer's listener."""

    def __init__(
        self,
        workspace: SyncWorkspace,
        transport: Optional[Transport] = None,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
    ):
        self.workspace = workspace
        self.settings = workspace.settings
        self.transport = transport or urllib_transport
        self.progress_callback = progress_callback

    def resolve(self, code: Any, local_address: Optional[str] = None) -> PairingAddress:
        """Turn a pairing code into the peer's address on our /24."""
        address = local_address or local_ipv4(
            self.settings.preferred_interfaces,
            include_loopback=self.settings.include_loopback,
        )
        return resolve_peer_address(code, address)

    def fetch(self, base_url: str) -> Dict[str, RemoteFileRecord]:
        status, body = self.transport(
            "GET", base_url.rstrip("/") + HASHES_PATH, None, self.settings.request_timeout
        )
        if status != 200:
            raise NetworkError(f"Peer answered HTTP {status} to fetch: {_detail(body)}", status)
        return decode_hashes(body)

    def push(self, base_url: str, changes: List[FileChange]) -> List[str]:
        """Send files to the peer. Returns the paths the peer failed to write."""
        status, body = self.transport(
            "POST",
            base_url.rstrip("/") + CHANGES_PATH,
            encode_changes(changes),
            self.settings.request_timeout,
        )
        if status == 200:
            return []
        failed = _failed_paths(body)
        if status == 500 and failed:
            return failed
        raise NetworkError(f"Peer answered HTTP {status} to changes: {_detail(body)}", status)

    def preview(self, base_url: str) -> SyncPlan:
        """Fetch and diff without touching either vault."""
        remote = self.fetch(base_url)
        return compute_decisions(
            self.workspace.snapshot(),
            self.workspace.baseline.load(),
            remote,
            local_exists=self.workspace.vault.exists,
            strategy=self.settings.strategy,
        )

    def sync_with_peer(self, code: Any) -> SyncResult:
        """Resolve the pairing code and run a full sync."""
        try:
            address = self.resolve(code)
        except SyncError as e:
            logger.warning("Could not resolve peer for code %r: %s", code, e)
            return SyncResult(success=False, message=f"Connection failed: {e}", errors=[str(e)])
        return self.sync_with_url(address.url(self.settings.port))

    def sync_with_url(self, base_url: str) -> SyncResult:
        """Fetch, diff, apply pulls, push the rest, then save the baseline.

        Any network or protocol failure aborts the remaining steps. Pulls
        already written stay in place and no new baseline is saved.
        """
        result = SyncResult(success=True, peer=base_url)
        ws = self.workspace

        try:
            remote = self.fetch(base_url)
            self._report_progress("Fetched peer files", 1, 5)

            local = ws.snapshot()
            baseline = ws.baseline.load()
            plan = compute_decisions(
                local,
                baseline,
                remote,
                local_exists=ws.vault.exists,
                strategy=self.settings.strategy,
            )
            result.conflicts = list(plan.conflicts)
            result.unresolved = plan.unresolved
            result.skipped = len(plan.skips)
            self._report_progress("Computed plan", 2, 5)

            conflict_paths = {c.path for c in plan.conflicts}

            def _before_write(path: str) -> None:
                if path in conflict_paths:
                    backup = ws.resolver.before_pull(path)
                    if backup is not None:
                        result.backups.append(str(backup))

            with ws.write_lock:
                report = ws.apply_files(
                    [FileChange(path, remote[path].data) for path in plan.pulls],
                    before_write=_before_write,
                )
            result.pulled = report.written
            result.errors.extend(f"pull {path}: {err}" for path, err in report.failed.items())
            self._report_progress("Applied pulls", 3, 5)

            changes: List[FileChange] = []
            for path in plan.pushes:
                # The peer already holds these exact bytes
                if path in remote and remote[path].hash == local.get(path):
                    continue
                try:
                    changes.append(FileChange(path, ws.vault.read_bytes(path)))
                except VaultIOError as e:
                    logger.error("Failed to read %s for push: %s", path, e)
                    result.errors.append(f"push {path}: {e.reason}")

            # Always post, even an empty batch: the peer saves its baseline on receipt
            failed = self.push(base_url, changes)
            result.pushed = [c.path for c in changes if c.path not in failed]
            result.errors.extend(f"peer could not write {path}" for path in failed)
            self._report_progress("Pushed changes", 4, 5)

            with ws.write_lock:
                ws.refresh_baseline()
            self._report_progress("Sync complete", 5, 5)

        except SyncError as e:
            result.success = False
            result.message = f"Sync failed: {e}"
            result.errors.append(str(e))
            logger.error("Sync with %s failed: %s", base_url, e, extra={"peer": base_url})
            return result

        result.message = result.summary()
        logger.info("Sync with %s finished: %s", base_url, result.message, extra={"peer": base_url})
        return result

    def _report_progress(self, message: str, current: int, total: int) -> None:
        """Report progress if callback is configured."""
        if self.progress_callback:
            self.progress_callback(message, current, total)
        logger.debug("Sync progress: %s (%d/%d)", message, current, total)


def _detail(body: bytes) -> str:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        text = body.decode("utf-8", errors="replace").strip()
        return text[:200] or "(empty body)"
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return str(payload)[:200]


def _failed_paths(body: bytes) -> List[str]:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return []
    if isinstance(payload, dict) and isinstance(payload.get("failed"), list):
        return [str(path) for path in payload["failed"]]
    return []


__all__ = ["SyncClient", "SyncResult", "Transport", "urllib_transport"]
