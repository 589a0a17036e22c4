"""Persistence of the snapshot taken after the last successful sync."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from .snapshot import Snapshot

if TYPE_CHECKING:
    from ..vault import JSONStateStore

logger = logging.getLogger("vaultsync.sync.baseline")


class BaselineStore:
    """Loads and saves the baseline used as the common ancestor in diffs.

    The baseline only sharpens conflict detection, so a missing or unreadable
    one is treated as empty rather than failing the sync.
    """

    def __init__(self, state_store: "JSONStateStore"):
        self.state_store = state_store
        self._lock = threading.Lock()

    def load(self) -> Snapshot:
        try:
            data = self.state_store.load_json()
        except (OSError, ValueError) as e:
            logger.warning("Failed to load baseline from %s: %s", self.state_store.path, e)
            return Snapshot()

        if data is None:
            logger.info("No previous baseline found - treating all files as new")
            return Snapshot()

        try:
            hashes = data["hashes"]
            if not isinstance(hashes, list):
                raise TypeError("'hashes' must be a list")
            return Snapshot.from_records(hashes)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed baseline in %s: %s", self.state_store.path, e)
            return Snapshot()

    def save(self, snapshot: Snapshot) -> None:
        payload = {
            "hashes": snapshot.to_records(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            self.state_store.save_json(payload)
        logger.debug("Saved baseline to %s (%d files)", self.state_store.path, len(snapshot))

    def saved_at(self) -> Optional[str]:
        try:
            data = self.state_store.load_json()
        except (OSError, ValueError):
            return None
        if isinstance(data, dict):
            return data.get("saved_at")
        return None

    def clear(self) -> None:
        with self._lock:
            self.state_store.clear()
        logger.info("Cleared baseline at %s", self.state_store.path)


__all__ = ["BaselineStore"]
