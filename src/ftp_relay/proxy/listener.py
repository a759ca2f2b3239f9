"""Listening socket and accept loop for the FTP relay.

ProxyServer accepts client control connections and hands each one to a
SessionRelay running in its own worker thread. Sessions share no state;
the number running at once is bounded by settings.max_sessions.
"""

import logging
import socket
import threading
from itertools import count
from typing import Optional, Tuple

from ftp_relay.config.settings import ProxySettings
from ftp_relay.proxy.channel import Connector, close_socket, connect
from ftp_relay.proxy.session import SessionOutcome, SessionRelay
from ftp_relay.utils.threading import TaskResult, ThreadedTask


logger = logging.getLogger(__name__)

# accept() wakes up this often to notice stop()
ACCEPT_POLL_INTERVAL = 0.5


class ProxyServer:
    """Accepts clients and runs one relay session per connection."""

    def __init__(self, settings: Optional[ProxySettings] = None, connector: Connector = connect):
        """
        Initialize the server.

        Args:
            settings: Proxy settings (defaults if omitted)
            connector: Passed to every session for outgoing connections
        """
        self._settings = settings or ProxySettings()
        self._connector = connector

        self._sock: Optional[socket.socket] = None
        self._stopped = threading.Event()
        self._slots = threading.BoundedSemaphore(self._settings.max_sessions)
        self._lock = threading.Lock()
        self._active = 0
        self._session_ids = count(1)

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port), or None before start()."""
        if self._sock is None:
            return None
        return self._sock.getsockname()[:2]

    @property
    def active_sessions(self) -> int:
        """Number of sessions currently running."""
        with self._lock:
            return self._active

    def start(self) -> Tuple[str, int]:
        """
        Bind and listen.

        Returns:
            The effective (host, port), useful when listen_port is 0

        Raises:
            OSError: If the listening socket cannot be set up
        """
        settings = self._settings
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((settings.listen_host, settings.listen_port))
            sock.listen(settings.backlog)
            sock.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError:
            sock.close()
            raise

        self._sock = sock
        self._stopped.clear()
        host, port = self.address
        logger.info("Listening address: %s", host)
        logger.info("Listening port: %d", port)
        return host, port

    def serve_forever(self) -> None:
        """Accept clients until stop() is called."""
        if self._sock is None:
            self.start()

        try:
            while not self._stopped.is_set():
                # Wait for a free session slot before taking the next client
                if not self._slots.acquire(timeout=ACCEPT_POLL_INTERVAL):
                    continue

                try:
                    client_sock, client_address = self._sock.accept()
                except socket.timeout:
                    self._slots.release()
                    continue
                except OSError as e:
                    self._slots.release()
                    if self._stopped.is_set():
                        break
                    logger.error("Error accepting connection: %s", e)
                    continue

                self._dispatch(client_sock, client_address)
        finally:
            self._close_listener()
            logger.info("Listener stopped")

    def stop(self) -> None:
        """Stop accepting clients. Running sessions finish on their own."""
        self._stopped.set()

    def _dispatch(self, client_sock: socket.socket, client_address) -> None:
        session_id = next(self._session_ids)
        logger.info("Accepted connection %d from %s", session_id, client_address)

        # Control reads block unless control_timeout is set
        client_sock.settimeout(None)

        relay = SessionRelay(client_sock, client_address, self._settings, self._connector)
        task = ThreadedTask(
            relay.run,
            name=f"session-{session_id}",
            on_complete=self._on_session_complete,
        )

        with self._lock:
            self._active += 1
        try:
            task.start()
        except RuntimeError as e:
            logger.error("Could not start session %d: %s", session_id, e)
            close_socket(client_sock)
            self._on_session_complete(None)

    def _on_session_complete(self, result: Optional[TaskResult[SessionOutcome]]) -> None:
        with self._lock:
            self._active -= 1
        self._slots.release()

        if result is None:
            return
        if result.succeeded:
            logger.debug("Session finished after %.2fs", result.elapsed)
        else:
            logger.error("Session ended with unexpected error: %s", result.error)

    def _close_listener(self) -> None:
        close_socket(self._sock)
        self._sock = None
