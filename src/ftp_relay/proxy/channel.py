"""Connections and control-channel I/O for the FTP relay.

Provides the connect() primitive used for the upstream control connection
and both data connections, and ControlChannel, a buffered line reader
over a connected socket.
"""

import logging
import re
import socket
from typing import Callable, Optional

from ftp_relay.proxy.exceptions import (
    ChannelIOError,
    LineTooLongError,
    PeerClosedError,
    ProxyConnectError,
)


logger = logging.getLogger(__name__)

# Reference control buffer size
DEFAULT_MAX_LINE_LENGTH = 1024

RECV_SIZE = 4096

# First line of a multi-line reply: "123-..."
MULTILINE_START = re.compile(rb'^(\d{3})-')

# (host, port) -> connected socket
Connector = Callable[[str, int], socket.socket]


def connect(host: str, port: int, timeout: Optional[float] = None) -> socket.socket:
    """
    Open a TCP connection.

    Args:
        host: Host name or address
        port: Port number
        timeout: Connect timeout in seconds (None = OS default)

    Returns:
        Connected socket in blocking mode

    Raises:
        ProxyConnectError: If the connection cannot be established
    """
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except (OSError, ValueError) as e:
        # ValueError covers names the IDNA codec rejects, e.g. "a..b"
        raise ProxyConnectError(host, port, e)

    # create_connection leaves the connect timeout on the socket
    sock.settimeout(None)
    logger.debug("Connected to %s:%d", host, port)
    return sock


def close_socket(sock: Optional[socket.socket]) -> None:
    """Close a socket, ignoring errors from an already broken connection."""
    if sock is None:
        return
    try:
        sock.close()
    except OSError as e:
        logger.debug("Error closing socket: %s", e)


class ControlChannel:
    """Line-oriented reader/writer over one control connection."""

    def __init__(
        self,
        sock: socket.socket,
        peer: str,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    ):
        """
        Initialize the channel.

        Args:
            sock: Connected socket, owned by the channel from now on
            peer: Name used in logs and errors ("client", "server")
            max_line_length: Longest accepted line, terminator included
        """
        self._sock = sock
        self._peer = peer
        self._max_line_length = max_line_length
        self._buffer = b""
        self._closed = False

    @property
    def peer(self) -> str:
        """Name of the remote side."""
        return self._peer

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        return self._closed

    def read_line(self) -> bytes:
        """
        Read one line, terminator included, exactly as received.

        Returns:
            The line bytes (ending in LF)

        Raises:
            PeerClosedError: If the peer closed before a full line arrived
            ChannelIOError: If the socket read fails
            LineTooLongError: If no terminator arrives within the length limit
        """
        while True:
            end = self._buffer.find(b"\n")
            if end != -1:
                if end + 1 > self._max_line_length:
                    raise LineTooLongError(self._peer, self._max_line_length)
                line, self._buffer = self._buffer[:end + 1], self._buffer[end + 1:]
                return line

            if len(self._buffer) >= self._max_line_length:
                raise LineTooLongError(self._peer, self._max_line_length)

            self._fill()

    def read_reply(self) -> bytes:
        """
        Read one complete FTP reply, multi-line replies included.

        Returns:
            All reply lines concatenated, exactly as received
        """
        first = self.read_line()
        match = MULTILINE_START.match(first)
        if not match:
            return first

        terminator = match.group(1) + b" "
        lines = [first]
        while True:
            line = self.read_line()
            lines.append(line)
            if line.startswith(terminator):
                return b"".join(lines)

    def send(self, data: bytes) -> None:
        """
        Write all of data to the peer.

        Raises:
            ChannelIOError: If the write fails
        """
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise ChannelIOError(self._peer, "write to", e)

    def close(self) -> None:
        """Close the underlying socket (idempotent)."""
        if self._closed:
            return
        self._closed = True
        close_socket(self._sock)
        logger.debug("Closed control connection to %s", self._peer)

    def _fill(self) -> None:
        try:
            chunk = self._sock.recv(RECV_SIZE)
        except OSError as e:
            raise ChannelIOError(self._peer, "read from", e)

        if not chunk:
            raise PeerClosedError(self._peer)

        self._buffer += chunk
