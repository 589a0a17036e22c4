"""Conflict resolution strategies for vault synchronization."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from .protocol import SyncDecision

logger = logging.getLogger("vaultsync.sync.conflict")


class ConflictStrategy(str, Enum):
    """How to settle a path changed on both peers since the baseline."""
    REMOTE_WINS = "remote_wins"
    LOCAL_WINS = "local_wins"
    BACKUP_BOTH = "backup_both"
    MANUAL = "manual"


_DECISIONS = {
    ConflictStrategy.REMOTE_WINS: SyncDecision.PULL,
    ConflictStrategy.LOCAL_WINS: SyncDecision.PUSH,
    ConflictStrategy.BACKUP_BOTH: SyncDecision.PULL,
    ConflictStrategy.MANUAL: SyncDecision.CONFLICT,
}


def decision_for(strategy: ConflictStrategy) -> SyncDecision:
    """Decision the engine records for a conflicting path."""
    return _DECISIONS[ConflictStrategy(strategy)]


class ConflictResolver:
    """Applies the side effects a strategy needs before a conflicting pull."""

    def __init__(
        self,
        vault_dir: Path,
        strategy: ConflictStrategy = ConflictStrategy.REMOTE_WINS,
        backup_dir: Optional[Path] = None,
    ):
        self.vault_dir = vault_dir
        self.strategy = ConflictStrategy(strategy)
        self.backup_dir = backup_dir or vault_dir / ".sync_backups"

    @property
    def decision(self) -> SyncDecision:
        return decision_for(self.strategy)

    def before_pull(self, rel_path: str) -> Optional[Path]:
        """Back up the local copy when the strategy keeps both versions."""
        if self.strategy != ConflictStrategy.BACKUP_BOTH:
            return None
        return self._create_backup(rel_path)

    def _create_backup(self, rel_path: str) -> Optional[Path]:
        """Create a backup of a local file before overwriting."""
        source = self.vault_dir / rel_path
        if not source.exists():
            return None

        # Mirror the vault layout so same-named files in different folders don't collide
        pure = PurePosixPath(rel_path)
        target_dir = self.backup_dir.joinpath(*pure.parent.parts)
        target_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = target_dir / f"{pure.stem}_{timestamp}{pure.suffix}"

        shutil.copy2(source, backup_path)
        logger.info("Created backup: %s -> %s", source, backup_path)
        return backup_path


__all__ = ["ConflictStrategy", "ConflictResolver", "decision_for"]
