"""Filesystem collaborators: the vault tree and small persisted JSON state."""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Iterator, List, Optional, Sequence

from .errors import VaultIOError

logger = logging.getLogger("vaultsync.vault")


def normalize_path(raw: str) -> str:
    """Return the vault-relative POSIX form of ``raw``.

    Raises ValueError for empty, absolute or parent-escaping paths so a peer
    can never address a file outside the vault root.
    """
    if not isinstance(raw, str):
        raise ValueError(f"path must be a string, got {type(raw).__name__}")
    text = raw.replace("\\", "/").strip()
    if not text:
        raise ValueError("path is empty")
    pure = PurePosixPath(text)
    if pure.is_absolute() or (len(text) > 1 and text[1] == ":"):
        raise ValueError(f"absolute path not allowed: {raw!r}")
    parts = [part for part in pure.parts if part not in ("", ".")]
    if not parts:
        raise ValueError(f"path has no file component: {raw!r}")
    if ".." in parts:
        raise ValueError(f"parent references not allowed: {raw!r}")
    return "/".join(parts)


class FileVault:
    """A directory tree of files addressed by normalized relative path."""

    def __init__(
        self,
        root: Path,
        exclude_patterns: Optional[Sequence[str]] = None,
        ignored_dirs: Optional[Sequence[str]] = None,
    ):
        self.root = Path(root)
        self.exclude_patterns = list(exclude_patterns) if exclude_patterns else []
        self.ignored_dirs = [d.strip("/") for d in ignored_dirs or [] if d.strip("/")]

    def list_files(self) -> List[str]:
        """List every syncable file in the vault, sorted by path."""
        return sorted(self._iter_files())

    def _iter_files(self) -> Iterator[str]:
        if not self.root.is_dir():
            return
        for file_path in self.root.rglob("*"):
            if not file_path.is_file():
                continue
            rel_path = file_path.relative_to(self.root).as_posix()
            if self._is_ignored(rel_path) or self._is_excluded(rel_path):
                continue
            yield rel_path

    def _is_ignored(self, rel_path: str) -> bool:
        for directory in self.ignored_dirs:
            if rel_path == directory or rel_path.startswith(directory + "/"):
                return True
        return False

    def _is_excluded(self, rel_path: str) -> bool:
        """Check if a path matches any exclude pattern."""
        for pattern in self.exclude_patterns:
            if fnmatch.fnmatch(rel_path, pattern):
                return True
            # Also check just the filename
            if fnmatch.fnmatch(PurePosixPath(rel_path).name, pattern):
                return True
        return False

    def resolve(self, path: str) -> Path:
        return self.root / normalize_path(path)

    def exists(self, path: str) -> bool:
        try:
            return self.resolve(path).is_file()
        except ValueError:
            return False

    def read_bytes(self, path: str) -> bytes:
        try:
            return self.resolve(path).read_bytes()
        except (OSError, ValueError) as exc:
            raise VaultIOError(path, exc) from exc

    def write_bytes(self, path: str, data: bytes) -> None:
        """Create or overwrite the file at ``path``.

        Paths inside the ignored state and backup directories are refused.
        """
        try:
            rel_path = normalize_path(path)
        except ValueError as exc:
            raise VaultIOError(path, exc) from exc
        if self._is_ignored(rel_path):
            raise VaultIOError(path, "path is inside a reserved directory")
        try:
            target = self.root / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise VaultIOError(path, exc) from exc
        logger.debug("Wrote %s (%d bytes)", path, len(data))


class JSONStateStore:
    """A single JSON document persisted with atomic replace."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_json(self) -> Optional[Any]:
        """Return the stored value, or None when nothing was saved yet.

        Decoding and read errors propagate to the caller.
        """
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as fh:
            return json.load(fh)

    def save_json(self, value: Any) -> None:
        """Write ``value`` to a temp file beside the target, then replace it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["FileVault", "JSONStateStore", "normalize_path"]
