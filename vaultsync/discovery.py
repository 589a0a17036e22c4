"""Peer addressing from the local IPv4 address and a pairing code."""

from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .errors import AddressingError

try:  # pragma: no cover - exercised via tests using monkeypatch
    import psutil  # type: ignore
except ImportError:  # pragma: no cover
    psutil = None  # type: ignore

logger = logging.getLogger("vaultsync.discovery")

# Any routable address works; no packet is sent for a UDP connect.
ROUTE_PROBE = ("10.255.255.255", 1)


@dataclass(frozen=True)
class PairingAddress:
    """A peer address built from a /24 prefix and a one-octet pairing code."""

    prefix: Tuple[int, int, int]
    code: int

    @property
    def host(self) -> str:
        return ".".join(str(octet) for octet in (*self.prefix, self.code))

    def url(self, port: int) -> str:
        return f"http://{self.host}:{port}"


def _is_loopback(name: str, address: str) -> bool:
    return name.lower().startswith("lo") or address.startswith("127.")


def _interface_candidates(
    preferred_interfaces: Sequence[str],
    include_loopback: bool,
) -> List[str]:
    if psutil is None:
        return []

    addrs = psutil.net_if_addrs()  # type: ignore[attr-defined]
    stats = psutil.net_if_stats()  # type: ignore[attr-defined]
    found: List[Tuple[int, str, str]] = []

    for name, entries in addrs.items():
        entry_stats = stats.get(name)
        if entry_stats is not None and not getattr(entry_stats, "isup", False):
            continue
        for addr in entries:
            if getattr(addr, "family", None) != socket.AF_INET:
                continue
            address = getattr(addr, "address", "")
            if not address or address.startswith("169.254."):
                continue
            if not include_loopback and _is_loopback(name, address):
                continue
            try:
                rank = list(preferred_interfaces).index(name)
            except ValueError:
                rank = len(preferred_interfaces)
            found.append((rank, name, address))

    # Stable ordering: preferred interfaces first, then alphabetical
    found.sort(key=lambda item: (item[0], item[1]))
    return [address for _, _, address in found]


def _route_probe_address() -> Optional[str]:
    """Ask the kernel which source address it would route from."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(ROUTE_PROBE)
        address = sock.getsockname()[0]
    except OSError as e:
        logger.debug("Route probe failed: %s", e)
        return None
    finally:
        sock.close()
    if not address or address.startswith("0."):
        return None
    return address


def local_ipv4(
    preferred_interfaces: Iterable[str] = (),
    include_loopback: bool = False,
) -> str:
    """Return this machine's LAN IPv4 address.

    Interfaces reported by psutil come first, ordered by
    ``preferred_interfaces``; the routing table is consulted when psutil
    finds nothing. Raises AddressingError when no address is available.
    """
    preferred = [name for name in preferred_interfaces if name]
    candidates = _interface_candidates(preferred, include_loopback)
    if candidates:
        logger.debug("Local IPv4 candidates: %s", ", ".join(candidates))
        return candidates[0]

    address = _route_probe_address()
    if address and (include_loopback or not address.startswith("127.")):
        return address

    raise AddressingError("Could not determine a local IPv4 address")


def _octets(address: str) -> Tuple[int, int, int, int]:
    try:
        parsed = ipaddress.IPv4Address(address.strip())
    except (ipaddress.AddressValueError, AttributeError) as e:
        raise AddressingError(f"Not an IPv4 address: {address!r}") from e
    a, b, c, d = parsed.packed
    return a, b, c, d


def pairing_code(address: str) -> str:
    """The code a user relays to the peer: the last octet of ``address``."""
    return str(_octets(address)[3])


def parse_pairing_code(text: Any) -> int:
    raw = str(text).strip() if text is not None else ""
    if not raw.isdigit() or not raw.isascii():
        raise AddressingError(f"Pairing code must be a number from 0 to 255, got {text!r}")
    value = int(raw)
    if value > 255:
        raise AddressingError(f"Pairing code must be a number from 0 to 255, got {text!r}")
    return value


def resolve_peer_address(code: Any, local_address: str) -> PairingAddress:
    """Combine our own /24 prefix with the peer's pairing code."""
    a, b, c, _ = _octets(local_address)
    return PairingAddress(prefix=(a, b, c), code=parse_pairing_code(code))


__all__ = [
    "PairingAddress",
    "local_ipv4",
    "pairing_code",
    "parse_pairing_code",
    "resolve_peer_address",
]
