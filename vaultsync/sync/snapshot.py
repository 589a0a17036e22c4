"""Content-addressed snapshots of a vault."""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from ..vault import FileVault

logger = logging.getLogger("vaultsync.sync.snapshot")


def compute_digest(data: bytes) -> str:
    """SHA-1 of the exact bytes, base64 encoded.

    Both peers must produce identical strings for identical content, so no
    normalization of any kind happens here.
    """
    return base64.b64encode(hashlib.sha1(data).digest()).decode("ascii")


@dataclass(frozen=True)
class FileEntry:
    """One file's identity and state at a point in time."""

    path: str
    hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "hash": self.hash}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileEntry":
        return cls(path=str(data["path"]), hash=str(data["hash"]))


@dataclass
class Snapshot:
    """Mapping of vault path to content digest, taken at one instant."""

    files: Dict[str, str] = field(default_factory=dict)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __getitem__(self, path: str) -> str:
        return self.files[path]

    def get(self, path: str, default: Optional[str] = None) -> Optional[str]:
        return self.files.get(path, default)

    def entries(self) -> List[FileEntry]:
        return [FileEntry(path, digest) for path, digest in sorted(self.files.items())]

    def to_records(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries()]

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "Snapshot":
        files: Dict[str, str] = {}
        for record in records:
            entry = FileEntry.from_dict(dict(record))
            files[entry.path] = entry.hash
        return cls(files=files)

    def copy(self) -> "Snapshot":
        return Snapshot(files=dict(self.files))


class SnapshotBuilder:
    """Builds snapshots by hashing every file the vault lists."""

    def __init__(self, vault: "FileVault"):
        self.vault = vault

    def build(self) -> Snapshot:
        """Hash every file in the vault.

        A file that cannot be read raises VaultIOError; skipping it would
        leave the snapshot incomplete.
        """
        snapshot = Snapshot()
        for path in self.vault.list_files():
            snapshot.files[path] = compute_digest(self.vault.read_bytes(path))

        logger.info("Built snapshot with %d files", len(snapshot))
        return snapshot

    def build_with_content(self) -> Tuple[Snapshot, Dict[str, bytes]]:
        """Hash every file and keep its bytes, reading each file once."""
        snapshot = Snapshot()
        contents: Dict[str, bytes] = {}
        for path in self.vault.list_files():
            data = self.vault.read_bytes(path)
            snapshot.files[path] = compute_digest(data)
            contents[path] = data

        logger.info("Built snapshot with %d files", len(snapshot))
        return snapshot, contents


__all__ = ["FileEntry", "Snapshot", "SnapshotBuilder", "compute_digest"]
