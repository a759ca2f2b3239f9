"""Control-line parsing for the FTP relay.

Extracts the login/server pair from the client's first line and turns
the six-field address notation used by PORT commands and 227 replies
into connectable endpoints. Malformed input is rejected, never guessed.
"""

import re
from dataclasses import dataclass
from typing import Sequence, Tuple

from ftp_relay.proxy.exceptions import (
    MalformedLoginError,
    MalformedPasvReplyError,
    MalformedPortError,
)
from ftp_relay.utils.validators import validate_port


# login@server, with an optional leading USER verb
LOGIN_PATTERN = re.compile(r'^(?:USER\s+)?([^@\s][^@]*)@(\S+)$', re.IGNORECASE)

# PORT h1,h2,h3,h4,p1,p2
PORT_PATTERN = re.compile(
    r'^PORT\s+(\d{1,3}),(\d{1,3}),(\d{1,3}),(\d{1,3}),(\d{1,3}),(\d{1,3})$',
    re.IGNORECASE
)

# 227 <any text> (h1,h2,h3,h4,p1,p2)
PASV_PATTERN = re.compile(
    r'^227[ -][^(]*\((\d{1,3}),(\d{1,3}),(\d{1,3}),(\d{1,3}),(\d{1,3}),(\d{1,3})\)',
    re.DOTALL
)


@dataclass(frozen=True)
class Endpoint:
    """A connectable (host, port) pair."""
    host: str
    port: int

    def to_ftp_fields(self) -> str:
        """Render as h1,h2,h3,h4,p1,p2."""
        return ",".join(self.host.split(".") + [str(self.port // 256), str(self.port % 256)])

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class LoginRequest:
    """Login name and target server taken from login@server."""
    login: str
    server: str

    def user_command(self) -> bytes:
        """USER command to forward upstream, without the @server suffix."""
        return f"USER {self.login}\r\n".encode("latin-1")


def _decode(line: bytes) -> str:
    return line.decode("latin-1").rstrip("\r\n")


def endpoint_from_fields(fields: Sequence[int]) -> Endpoint:
    """
    Rebuild an endpoint from the six FTP address fields.

    Args:
        fields: h1, h2, h3, h4, p1, p2 as integers

    Returns:
        Endpoint with dotted-decimal host and port p1*256 + p2

    Raises:
        ValueError: If there are not exactly six fields or any is out of range
    """
    if len(fields) != 6:
        raise ValueError(f"Expected 6 address fields, got {len(fields)}")
    for value in fields:
        if not 0 <= value <= 255:
            raise ValueError(f"Address field out of range: {value}")

    host = ".".join(str(value) for value in fields[:4])
    port = fields[4] * 256 + fields[5]

    is_valid, error = validate_port(port, "data port")
    if not is_valid:
        raise ValueError(error)

    return Endpoint(host=host, port=port)


def _match_fields(pattern: re.Pattern, text: str) -> Tuple[int, ...]:
    match = pattern.match(text)
    if not match:
        raise ValueError("No address fields found")
    return tuple(int(group) for group in match.groups())


def parse_login(line: bytes) -> LoginRequest:
    """
    Parse the client's login@server line.

    Raises:
        MalformedLoginError: If the line is not of that shape
    """
    match = LOGIN_PATTERN.match(_decode(line).strip())
    if not match:
        raise MalformedLoginError(line)
    return LoginRequest(login=match.group(1).strip(), server=match.group(2))


def parse_port_command(line: bytes) -> Endpoint:
    """
    Parse a client PORT command into the client's data endpoint.

    Raises:
        MalformedPortError: If the verb or the six fields are missing or invalid
    """
    try:
        return endpoint_from_fields(_match_fields(PORT_PATTERN, _decode(line).strip()))
    except ValueError:
        raise MalformedPortError(line)


def parse_pasv_reply(reply: bytes) -> Endpoint:
    """
    Parse a server 227 reply into the server's passive data endpoint.

    The text between the reply code and the parenthesis is not checked.

    Raises:
        MalformedPasvReplyError: If the code or the six fields are missing or invalid
    """
    try:
        return endpoint_from_fields(_match_fields(PASV_PATTERN, _decode(reply)))
    except ValueError:
        raise MalformedPasvReplyError(reply)
