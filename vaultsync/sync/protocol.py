"""Wire format for the /hashes and /changes endpoints."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from ..errors import ProtocolError
from ..vault import normalize_path
from .snapshot import Snapshot

HASHES_PATH = "/hashes"
CHANGES_PATH = "/changes"
HEALTH_PATH = "/health"


class SyncDecision(str, Enum):
    """Per-path outcome of the diff engine."""
    PULL = "pull"
    PUSH = "push"
    SKIP = "skip"
    CONFLICT = "conflict"  # unresolved, left for the user


def encode_content(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_content(text: Any, path: str = "") -> bytes:
    if not isinstance(text, str):
        raise ProtocolError(f"'data' for '{path}' must be a base64 string")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ProtocolError(f"Invalid base64 content for '{path}': {e}") from e


def _safe_path(raw: Any) -> str:
    try:
        return normalize_path(raw)
    except ValueError as e:
        raise ProtocolError(f"Invalid path {raw!r}: {e}") from e


@dataclass
class RemoteFileRecord:
    """A file as served by a peer: path, digest and content."""

    path: str
    hash: str
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "hash": self.hash,
            "data": encode_content(self.data),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteFileRecord":
        if not isinstance(data, Mapping):
            raise ProtocolError("file record must be an object")
        try:
            raw_path, digest, content = data["path"], data["hash"], data["data"]
        except KeyError as e:
            raise ProtocolError(f"file record missing key {e}") from e
        path = _safe_path(raw_path)
        if not isinstance(digest, str) or not digest:
            raise ProtocolError(f"'hash' for '{path}' must be a non-empty string")
        return cls(path=path, hash=digest, data=decode_content(content, path))


@dataclass
class FileChange:
    """A file the sender wants the receiver to create or overwrite."""

    path: str
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "data": encode_content(self.data)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileChange":
        if not isinstance(data, Mapping):
            raise ProtocolError("change entry must be an object")
        try:
            raw_path, content = data["path"], data["data"]
        except KeyError as e:
            raise ProtocolError(f"change entry missing key {e}") from e
        path = _safe_path(raw_path)
        return cls(path=path, data=decode_content(content, path))


def _load_list(body: Union[bytes, str], what: str) -> List[Any]:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Malformed JSON in {what}: {e}") from e
    if not isinstance(payload, list):
        raise ProtocolError(f"{what} must be a JSON array, got {type(payload).__name__}")
    return payload


def encode_hashes(records: List[RemoteFileRecord]) -> List[Dict[str, Any]]:
    return [record.to_dict() for record in records]


def decode_hashes(body: Union[bytes, str]) -> Dict[str, RemoteFileRecord]:
    """Parse a /hashes response body into records keyed by path."""
    remote: Dict[str, RemoteFileRecord] = {}
    for item in _load_list(body, "hashes response"):
        record = RemoteFileRecord.from_dict(item)
        remote[record.path] = record
    return remote


def encode_changes(changes: List[FileChange]) -> bytes:
    return json.dumps([change.to_dict() for change in changes]).encode("utf-8")


def decode_changes(body: Union[bytes, str]) -> List[FileChange]:
    """Parse a /changes request body."""
    return [FileChange.from_dict(item) for item in _load_list(body, "changes request")]


def remote_snapshot(remote: Mapping[str, RemoteFileRecord]) -> Snapshot:
    return Snapshot(files={path: record.hash for path, record in remote.items()})


__all__ = [
    "CHANGES_PATH",
    "HASHES_PATH",
    "HEALTH_PATH",
    "FileChange",
    "RemoteFileRecord",
    "SyncDecision",
    "decode_changes",
    "decode_content",
    "decode_hashes",
    "encode_changes",
    "encode_content",
    "encode_hashes",
    "remote_snapshot",
]
