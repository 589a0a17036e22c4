"""Tests for the /hashes and /changes wire format."""

from __future__ import annotations

import base64
import json

import pytest

from vaultsync.errors import ProtocolError
from vaultsync.sync.protocol import (
    FileChange,
    RemoteFileRecord,
    decode_changes,
    decode_hashes,
    encode_changes,
    encode_hashes,
)
from vaultsync.sync.snapshot import compute_digest


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_hashes_carry_path_hash_and_base64_data():
    record = RemoteFileRecord("notes/a.md", compute_digest(b"\xffbinary"), b"\xffbinary")

    payload = encode_hashes([record])

    assert payload == [{"path": "notes/a.md", "hash": record.hash, "data": _b64(b"\xffbinary")}]
    assert decode_hashes(json.dumps(payload)) == {"notes/a.md": record}


def test_changes_body_is_a_json_array():
    body = encode_changes([FileChange("a.md", b"x")])

    assert json.loads(body) == [{"path": "a.md", "data": _b64(b"x")}]


def test_decode_changes_normalizes_separators():
    body = json.dumps([{"path": "notes\\daily.md", "data": _b64(b"hi")}])

    assert decode_changes(body) == [FileChange("notes/daily.md", b"hi")]


def test_decode_changes_accepts_empty_batch():
    assert decode_changes(b"[]") == []


@pytest.mark.parametrize(
    "body",
    [
        b"{not json",
        b'{"path": "a.md", "data": ""}',
        b'["a.md"]',
        b'[{"data": "eA=="}]',
        b'[{"path": "a.md"}]',
        b'[{"path": "a.md", "data": "***"}]',
        b'[{"path": "a.md", "data": 5}]',
        b'[{"path": "../escape.md", "data": "eA=="}]',
        b'[{"path": "/etc/passwd", "data": "eA=="}]',
        b'[{"path": "", "data": "eA=="}]',
    ],
)
def test_decode_changes_rejects_malformed_bodies(body: bytes):
    with pytest.raises(ProtocolError):
        decode_changes(body)


@pytest.mark.parametrize(
    "item",
    [
        {"path": "a.md", "data": "eA=="},
        {"path": "a.md", "hash": "", "data": "eA=="},
        {"path": "a.md", "hash": 3, "data": "eA=="},
    ],
)
def test_decode_hashes_requires_a_digest(item):
    with pytest.raises(ProtocolError):
        decode_hashes(json.dumps([item]))
