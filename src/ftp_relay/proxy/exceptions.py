"""Proxy-specific exceptions for the FTP relay.

Every error raised while driving a session derives from ProxyError, so
the session relay can unwind to teardown on a single except clause.
"""

from typing import Optional


class ProxyError(Exception):
    """Base exception for all session-fatal proxy errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class ProxyConnectError(ProxyError):
    """Failed to open a connection to the server or a data endpoint."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class ProtocolSyntaxError(ProxyError):
    """A control line did not have the shape the dialogue requires."""

    def __init__(self, message: str, line: Optional[bytes] = None):
        self.line = line
        super().__init__(message)


class MalformedLoginError(ProtocolSyntaxError):
    """Login line is not of the form login@server."""

    def __init__(self, line: Optional[bytes] = None):
        super().__init__("Malformed login, expected login@server", line)


class MalformedPortError(ProtocolSyntaxError):
    """PORT command does not carry six decimal fields."""

    def __init__(self, line: Optional[bytes] = None):
        super().__init__("Malformed PORT command", line)


class MalformedPasvReplyError(ProtocolSyntaxError):
    """227 reply does not carry a parenthesised six-field address."""

    def __init__(self, line: Optional[bytes] = None):
        super().__init__("Malformed PASV reply", line)


class LineTooLongError(ProtocolSyntaxError):
    """Control line exceeded the configured maximum length."""

    def __init__(self, peer: str, limit: int):
        self.peer = peer
        self.limit = limit
        super().__init__(f"Control line from {peer} exceeds {limit} bytes")


class ChannelError(ProxyError):
    """Base for read/write failures on a control or data stream."""

    def __init__(self, peer: str, message: str, original_error: Exception = None):
        self.peer = peer
        super().__init__(message, original_error)


class PeerClosedError(ChannelError):
    """Peer closed the stream while more input was expected."""

    def __init__(self, peer: str):
        super().__init__(peer, f"Connection closed by {peer}")


class ChannelIOError(ChannelError):
    """Socket read or write failed."""

    def __init__(self, peer: str, operation: str, original_error: Exception = None):
        self.operation = operation
        super().__init__(peer, f"Failed to {operation} {peer}", original_error)
