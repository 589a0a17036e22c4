"""Settings and the per-vault objects both sync roles share."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..configuration import DEFAULT_SYNC_PORT, STATE_DIR_NAME
from ..errors import VaultIOError
from ..vault import FileVault, JSONStateStore
from .baseline import BaselineStore
from .conflict import ConflictResolver, ConflictStrategy
from .protocol import FileChange, RemoteFileRecord
from .snapshot import Snapshot, SnapshotBuilder

logger = logging.getLogger("vaultsync.sync.workspace")


@dataclass
class SyncSettings:
    """Settings for sync operations."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_SYNC_PORT
    session_timeout: float = 30.0
    request_timeout: float = 30.0
    conflict_strategy: str = ConflictStrategy.REMOTE_WINS.value
    state_dir: str = STATE_DIR_NAME
    baseline_file: str = "baseline.json"
    backup_dir: str = ".sync_backups"
    exclude_patterns: Tuple[str, ...] = ("*.tmp", ".DS_Store", "Thumbs.db")
    preferred_interfaces: Tuple[str, ...] = ()
    include_loopback: bool = False

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "SyncSettings":
        raw = (config.get("sync") or {}) if config else {}
        net = (config.get("network") or {}) if config else {}
        defaults = cls()
        return cls(
            host=str(raw.get("host", defaults.host)),
            port=int(raw.get("port", defaults.port)),
            session_timeout=float(raw.get("session_timeout", defaults.session_timeout)),
            request_timeout=float(raw.get("request_timeout", defaults.request_timeout)),
            conflict_strategy=str(raw.get("conflict_strategy", defaults.conflict_strategy)),
            state_dir=str(raw.get("state_dir", defaults.state_dir)),
            baseline_file=str(raw.get("baseline_file", defaults.baseline_file)),
            backup_dir=str(raw.get("backup_dir", defaults.backup_dir)),
            exclude_patterns=tuple(raw.get("exclude_patterns", defaults.exclude_patterns)),
            preferred_interfaces=tuple(net.get("preferred_interfaces", ())),
            include_loopback=bool(net.get("include_loopback", False)),
        )

    @property
    def strategy(self) -> ConflictStrategy:
        return ConflictStrategy(self.conflict_strategy)


@dataclass
class ApplyReport:
    """Outcome of materializing a batch of files."""

    written: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class SyncWorkspace:
    """Vault, snapshot builder, baseline store and conflict resolver for one vault."""

    def __init__(self, vault_dir: Path, settings: SyncSettings):
        self.vault_dir = Path(vault_dir)
        self.settings = settings
        self.vault = FileVault(
            self.vault_dir,
            exclude_patterns=settings.exclude_patterns,
            ignored_dirs=[settings.state_dir, settings.backup_dir],
        )
        self.builder = SnapshotBuilder(self.vault)
        self.baseline = BaselineStore(
            JSONStateStore(self.vault_dir / settings.state_dir / settings.baseline_file)
        )
        self.resolver = ConflictResolver(
            self.vault_dir,
            settings.strategy,
            backup_dir=self.vault_dir / settings.backup_dir,
        )
        # Serializes writes into the vault together with the baseline that follows them
        self.write_lock = threading.Lock()

    def snapshot(self) -> Snapshot:
        return self.builder.build()

    def collect_records(self) -> List[RemoteFileRecord]:
        """Every file with its digest and content, as served by GET /hashes."""
        snapshot, contents = self.builder.build_with_content()
        return [
            RemoteFileRecord(path=path, hash=digest, data=contents[path])
            for path, digest in sorted(snapshot.files.items())
        ]

    def apply_files(
        self,
        changes: Iterable[FileChange],
        before_write: Optional[Callable[[str], Any]] = None,
    ) -> ApplyReport:
        """Create or overwrite each file; failures are per file.

        A file whose current content already matches is left untouched.
        """
        report = ApplyReport()
        for change in changes:
            try:
                if self._has_content(change.path, change.data):
                    report.unchanged.append(change.path)
                    continue
                if before_write is not None:
                    before_write(change.path)
                self.vault.write_bytes(change.path, change.data)
                report.written.append(change.path)
            except (VaultIOError, OSError) as e:
                logger.error("Failed to write %s: %s", change.path, e)
                report.failed[change.path] = str(e)
        return report

    def _has_content(self, path: str, data: bytes) -> bool:
        if not self.vault.exists(path):
            return False
        try:
            return self.vault.read_bytes(path) == data
        except VaultIOError:
            return False

    def refresh_baseline(self) -> Snapshot:
        """Snapshot the vault as it is now and persist it as the baseline."""
        snapshot = self.snapshot()
        self.baseline.save(snapshot)
        return snapshot


__all__ = ["ApplyReport", "SyncSettings", "SyncWorkspace"]
