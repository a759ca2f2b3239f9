"""Pytest configuration and shared fixtures for FTP relay tests."""

import socket
from typing import Callable, Dict, List, Tuple, Union

import pytest

from ftp_relay.config.settings import ProxySettings
from ftp_relay.proxy.exceptions import ProxyConnectError


# Test constants
TEST_SERVER = "ftp.example.com"
TEST_UPSTREAM_PORT = 21
TEST_CLIENT_ENDPOINT = ("10.0.0.5", 51210)
TEST_SERVER_ENDPOINT = ("10.0.0.9", 80)


class FakeConnector:
    """
    Connector returning pre-made sockets instead of dialing out.

    Register a socket (or an exception to raise) per (host, port);
    every call is recorded in order.
    """

    def __init__(self):
        self.targets: Dict[Tuple[str, int], Union[socket.socket, Exception]] = {}
        self.calls: List[Tuple[str, int]] = []

    def register(self, host: str, port: int, target: Union[socket.socket, Exception]) -> None:
        self.targets[(host, port)] = target

    def __call__(self, host: str, port: int) -> socket.socket:
        self.calls.append((host, port))
        target = self.targets.get((host, port))
        if target is None:
            raise ProxyConnectError(host, port, ConnectionRefusedError("not registered"))
        if isinstance(target, Exception):
            raise target
        return target


@pytest.fixture
def socket_pair() -> Callable[[], Tuple[socket.socket, socket.socket]]:
    """Factory for connected socket pairs, all closed at teardown."""
    created = []

    def make() -> Tuple[socket.socket, socket.socket]:
        pair = socket.socketpair()
        created.extend(pair)
        return pair

    yield make

    for sock in created:
        sock.close()


@pytest.fixture
def fake_connector() -> FakeConnector:
    """Provide an empty fake connector."""
    return FakeConnector()


@pytest.fixture
def fast_settings() -> ProxySettings:
    """Settings with a short data timeout for tests."""
    return ProxySettings(data_timeout=0.3)


def read_all(sock: socket.socket, timeout: float = 2.0) -> bytes:
    """Read from sock until the peer closes it."""
    sock.settimeout(timeout)
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def is_closed_by_peer(sock: socket.socket, timeout: float = 2.0) -> bool:
    """True if the other end of sock has been closed (after draining)."""
    try:
        read_all(sock, timeout)
    except socket.timeout:
        return False
    return True
