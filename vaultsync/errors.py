"""Error taxonomy for vault synchronization."""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for every failure raised by the sync core."""


class VaultIOError(SyncError):
    """
    Raised when a single file cannot be read or written.

    Affects only the file named by ``path``; callers processing a batch
    record it and move on to the next entry.
    """

    def __init__(self, path: str, reason: object):
        self.path = path
        self.reason = reason
        super().__init__(f"I/O failure on '{path}': {reason}")


class NetworkError(SyncError):
    """
    Raised when talking to a peer fails: connection refused, timeout or an
    unexpected HTTP status. Aborts the whole sync attempt.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class AddressingError(NetworkError):
    """
    Raised when no local IPv4 address can be found or a pairing code is not
    a valid octet. Reported to the user as a connection failure.
    """


class ProtocolError(SyncError):
    """Raised when a request or response body does not match the wire format."""


class ServiceStateError(SyncError):
    """Raised on an invalid listener transition (start twice, stop while idle)."""


__all__ = [
    "SyncError",
    "VaultIOError",
    "NetworkError",
    "AddressingError",
    "ProtocolError",
    "ServiceStateError",
]
