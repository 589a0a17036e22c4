"""Tests for local address detection and pairing codes."""

from __future__ import annotations

import socket
from types import SimpleNamespace

import pytest

from vaultsync import discovery
from vaultsync.errors import AddressingError


def _fake_psutil(interfaces, down=()):
    addrs = {
        name: [SimpleNamespace(family=socket.AF_INET, address=address)]
        for name, address in interfaces.items()
    }
    stats = {name: SimpleNamespace(isup=name not in down) for name in interfaces}
    return SimpleNamespace(net_if_addrs=lambda: addrs, net_if_stats=lambda: stats)


def test_local_ipv4_skips_loopback_link_local_and_down(monkeypatch: pytest.MonkeyPatch):
    fake = _fake_psutil(
        {
            "lo": "127.0.0.1",
            "eth0": "169.254.3.4",
            "eth1": "10.0.0.9",
            "wlan0": "192.168.1.20",
        },
        down={"eth1"},
    )
    monkeypatch.setattr(discovery, "psutil", fake)

    assert discovery.local_ipv4() == "192.168.1.20"


def test_local_ipv4_honours_preferred_interface_order(monkeypatch: pytest.MonkeyPatch):
    fake = _fake_psutil({"eth0": "10.0.0.5", "wlan0": "192.168.1.20"})
    monkeypatch.setattr(discovery, "psutil", fake)

    assert discovery.local_ipv4() == "10.0.0.5"
    assert discovery.local_ipv4(["wlan0"]) == "192.168.1.20"


def test_local_ipv4_ignores_ipv6_entries(monkeypatch: pytest.MonkeyPatch):
    fake = SimpleNamespace(
        net_if_addrs=lambda: {
            "eth0": [
                SimpleNamespace(family=socket.AF_INET6, address="fe80::1"),
                SimpleNamespace(family=socket.AF_INET, address="192.168.0.7"),
            ]
        },
        net_if_stats=lambda: {"eth0": SimpleNamespace(isup=True)},
    )
    monkeypatch.setattr(discovery, "psutil", fake)

    assert discovery.local_ipv4() == "192.168.0.7"


def test_local_ipv4_falls_back_to_route_probe(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(discovery, "psutil", None)
    monkeypatch.setattr(discovery, "_route_probe_address", lambda: "192.168.5.9")

    assert discovery.local_ipv4() == "192.168.5.9"


def test_local_ipv4_raises_when_nothing_found(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(discovery, "psutil", _fake_psutil({"lo": "127.0.0.1"}))
    monkeypatch.setattr(discovery, "_route_probe_address", lambda: None)

    with pytest.raises(AddressingError):
        discovery.local_ipv4()


def test_loopback_is_allowed_when_requested(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(discovery, "psutil", _fake_psutil({"lo": "127.0.0.1"}))

    assert discovery.local_ipv4(include_loopback=True) == "127.0.0.1"


def test_pairing_code_is_last_octet():
    assert discovery.pairing_code("192.168.1.42") == "42"
    assert discovery.pairing_code("10.0.0.0") == "0"


@pytest.mark.parametrize("text, expected", [("42", 42), (" 7 ", 7), ("0", 0), ("255", 255), (9, 9)])
def test_parse_pairing_code_accepts_octets(text, expected):
    assert discovery.parse_pairing_code(text) == expected


@pytest.mark.parametrize("text", ["", "256", "-1", "4.2", "abc", "１２", None])
def test_parse_pairing_code_rejects_invalid(text):
    with pytest.raises(AddressingError):
        discovery.parse_pairing_code(text)


def test_resolve_peer_address_uses_own_prefix():
    address = discovery.resolve_peer_address("42", "192.168.1.7")

    assert address.host == "192.168.1.42"
    assert address.url(56780) == "http://192.168.1.42:56780"


def test_resolve_peer_address_rejects_bad_local_address():
    with pytest.raises(AddressingError):
        discovery.resolve_peer_address("42", "not-an-ip")
