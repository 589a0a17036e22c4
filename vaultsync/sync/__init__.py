"""Vault synchronization core."""

from __future__ import annotations

from .snapshot import FileEntry, Snapshot, SnapshotBuilder, compute_digest
from .baseline import BaselineStore
from .protocol import FileChange, RemoteFileRecord, SyncDecision, decode_changes, decode_hashes
from .conflict import ConflictResolver, ConflictStrategy
from .engine import ConflictRecord, SyncPlan, compute_decisions
from .workspace import ApplyReport, SyncSettings, SyncWorkspace
from .service import ServiceState, SyncService
from .client import SyncClient, SyncResult

__all__ = [
    # Snapshot
    "FileEntry",
    "Snapshot",
    "SnapshotBuilder",
    "compute_digest",
    # Baseline
    "BaselineStore",
    # Protocol
    "FileChange",
    "RemoteFileRecord",
    "SyncDecision",
    "decode_changes",
    "decode_hashes",
    # Engine
    "ConflictRecord",
    "ConflictResolver",
    "ConflictStrategy",
    "SyncPlan",
    "compute_decisions",
    # Roles
    "ApplyReport",
    "ServiceState",
    "SyncClient",
    "SyncResult",
    "SyncService",
    "SyncSettings",
    "SyncWorkspace",
]
