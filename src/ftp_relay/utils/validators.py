"""Setting validators for the FTP relay.

Each validator returns (is_valid, error_message) and names the offending
setting in its message, so ProxySettings can report the first failure
as a ValueError.
"""

import re
from typing import Optional, Tuple


Check = Tuple[bool, Optional[str]]

# Longest idle or control timeout accepted, in seconds
MAX_TIMEOUT = 300

IPV4_ADDRESS = re.compile(
    r'^(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)$'
)

# Digits and dots only: a dotted quad, valid or not, never a host name
NUMERIC_HOST = re.compile(r'^[\d.]+$')

# RFC 1123 labels, dot separated, at most 253 characters overall
HOST_NAME = re.compile(
    r'^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?'
    r'(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$'
)


def _is_integer(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_host(host: str, name: str = "host") -> Check:
    """
    Validate an IPv4 address or host name.

    Args:
        host: Value to check
        name: Setting name used in the error message

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(host, str) or not host.strip():
        return False, f"{name} is required"

    if IPV4_ADDRESS.match(host):
        return True, None
    if not NUMERIC_HOST.match(host) and HOST_NAME.match(host):
        return True, None

    return False, f"{name} is not an IPv4 address or host name: {host!r}"


def validate_port(port: int, name: str = "port", allow_zero: bool = False) -> Check:
    """
    Validate a TCP port number.

    Args:
        port: Value to check
        name: Setting name used in the error message
        allow_zero: Accept 0, which lets the OS pick a port when binding
    """
    if not _is_integer(port):
        return False, f"{name} must be an integer"

    lowest = 0 if allow_zero else 1
    if not lowest <= port <= 65535:
        return False, f"{name} must be between {lowest} and 65535, got {port}"

    return True, None


def validate_seconds(value: float, name: str, maximum: float = MAX_TIMEOUT) -> Check:
    """Validate a timeout: a number of seconds in (0, maximum]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, f"{name} must be a number of seconds"

    if not 0 < value <= maximum:
        return False, f"{name} must be greater than 0 and at most {maximum} seconds, got {value}"

    return True, None


def validate_count(value: int, name: str, minimum: int = 1) -> Check:
    """Validate an integer size or limit of at least ``minimum``."""
    if not _is_integer(value):
        return False, f"{name} must be an integer"

    if value < minimum:
        return False, f"{name} must be at least {minimum}, got {value}"

    return True, None
