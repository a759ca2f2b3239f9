"""Data-channel bridging for the FTP relay.

Streams listing bytes from the server-side (passive) data connection to
the client-side (active) data connection, one chunk at a time.
"""

import logging
import socket
from dataclasses import dataclass
from enum import Enum


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024


class BridgeStatus(Enum):
    """How a bridge run ended."""
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"


@dataclass
class BridgeResult:
    """Result of relaying one data transfer."""
    status: BridgeStatus
    bytes_relayed: int = 0
    chunks: int = 0

    @property
    def clean(self) -> bool:
        """True if the transfer ended on end-of-data or idle timeout."""
        return self.status in (BridgeStatus.COMPLETED, BridgeStatus.TIMED_OUT)


def bridge_data(
    source: socket.socket,
    sink: socket.socket,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> BridgeResult:
    """
    Relay bytes from source to sink until end-of-data.

    The source's socket timeout acts as the idle timeout. Neither
    socket is closed here.

    Args:
        source: Server-side data connection
        sink: Client-side data connection
        chunk_size: Maximum bytes read per iteration

    Returns:
        BridgeResult with the end status and byte count
    """
    relayed = 0
    chunks = 0

    while True:
        try:
            chunk = source.recv(chunk_size)
        except socket.timeout:
            logger.info("Data connection idle timeout after %d bytes, ending transfer", relayed)
            return BridgeResult(BridgeStatus.TIMED_OUT, relayed, chunks)
        except OSError as e:
            logger.warning("Error reading from server data connection: %s", e)
            return BridgeResult(BridgeStatus.READ_FAILED, relayed, chunks)

        if not chunk:
            logger.debug("Server data connection finished after %d bytes", relayed)
            return BridgeResult(BridgeStatus.COMPLETED, relayed, chunks)

        try:
            sink.sendall(chunk)
        except OSError as e:
            logger.warning("Error writing to client data connection: %s", e)
            return BridgeResult(BridgeStatus.WRITE_FAILED, relayed, chunks)

        relayed += len(chunk)
        chunks += 1
        logger.debug("Relayed %d bytes of listing data: %r", len(chunk), chunk)
