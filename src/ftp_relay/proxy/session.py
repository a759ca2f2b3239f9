"""Session relay for the FTP relay.

Drives the fixed dialogue for one accepted client: welcome, login relay,
SYST relay, PORT/PASV translation, LIST relay and teardown. The client
believes it is talking active mode; upstream, the proxy always uses
passive mode and bridges the two data connections itself.
"""

import logging
import socket
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ftp_relay.config.settings import ProxySettings
from ftp_relay.proxy.addressing import parse_login, parse_pasv_reply, parse_port_command
from ftp_relay.proxy.bridge import BridgeResult, bridge_data
from ftp_relay.proxy.channel import Connector, ControlChannel, close_socket, connect
from ftp_relay.proxy.exceptions import (
    PeerClosedError,
    ProtocolSyntaxError,
    ProxyConnectError,
    ProxyError,
)


logger = logging.getLogger(__name__)

WELCOME = b"220 Bienvenue au proxy :) \r\n"
PASV_COMMAND = b"PASV\r\n"
PORT_CONFIRMATION = b"200 PORT Command successful\r\n"


class SessionState(Enum):
    """Steps of the relayed dialogue, in order."""
    GREET = "greet"
    RECEIVE_LOGIN = "receive_login"
    CONNECT_UPSTREAM = "connect_upstream"
    RECEIVE_SERVER_BANNER = "receive_server_banner"
    SEND_USER = "send_user"
    RELAY_PASS_REQUEST = "relay_pass_request"
    RECEIVE_PASS = "receive_pass"
    RELAY_LOGIN_RESULT = "relay_login_result"
    RELAY_SYST = "relay_syst"
    RECEIVE_PORT = "receive_port"
    OPEN_ACTIVE_DATA = "open_active_data"
    NEGOTIATE_PASSIVE = "negotiate_passive"
    OPEN_PASSIVE_DATA = "open_passive_data"
    CONFIRM_PORT = "confirm_port"
    RELAY_LIST = "relay_list"
    BRIDGE_DATA = "bridge_data"
    RELAY_TRANSFER_COMPLETE = "relay_transfer_complete"
    TEARDOWN = "teardown"


@dataclass
class SessionOutcome:
    """How a session ended."""
    completed: bool = False
    state: SessionState = SessionState.GREET
    error: Optional[ProxyError] = None
    bridge_result: Optional[BridgeResult] = None

    @property
    def bytes_relayed(self) -> int:
        """Listing bytes bridged from server to client."""
        if self.bridge_result is None:
            return 0
        return self.bridge_result.bytes_relayed


class SessionRelay:
    """Relays one client session to the server it names at login."""

    def __init__(
        self,
        client_sock: socket.socket,
        client_address=None,
        settings: Optional[ProxySettings] = None,
        connector: Connector = connect
    ):
        """
        Initialize the relay.

        Args:
            client_sock: Accepted client control socket, owned by the relay
            client_address: Peer address, for logging
            settings: Proxy settings (defaults if omitted)
            connector: Opens (host, port) connections
        """
        self._client_sock = client_sock
        self._client_address = client_address
        self._settings = settings or ProxySettings()
        self._connector = connector
        self._state = SessionState.GREET
        self._bridge_result: Optional[BridgeResult] = None

    @property
    def state(self) -> SessionState:
        """Step currently (or last) executed."""
        return self._state

    def run(self) -> SessionOutcome:
        """
        Drive the session to completion or to the first failure.

        All sockets are closed before this returns, on every path.

        Returns:
            SessionOutcome describing where and how the session ended
        """
        outcome = SessionOutcome()

        with ExitStack() as stack:
            client = ControlChannel(self._client_sock, "client", self._settings.max_line_length)
            stack.callback(client.close)
            if self._settings.control_timeout is not None:
                self._client_sock.settimeout(self._settings.control_timeout)

            try:
                self._relay(stack, client)
                outcome.completed = True
            except ProxyError as e:
                outcome.error = e
                self._log_failure(e)
            finally:
                outcome.state = self._state
                outcome.bridge_result = self._bridge_result
                self._state = SessionState.TEARDOWN

        logger.info(
            "Session %s ended %s at %s (%d data bytes relayed)",
            self._client_address,
            "normally" if outcome.completed else "with error",
            outcome.state.value,
            outcome.bytes_relayed,
        )
        return outcome

    def _relay(self, stack: ExitStack, client: ControlChannel) -> None:
        settings = self._settings

        self._enter(SessionState.GREET)
        client.send(WELCOME)

        self._enter(SessionState.RECEIVE_LOGIN)
        login = parse_login(self._read_line(client))

        self._enter(SessionState.CONNECT_UPSTREAM)
        server_sock = self._connector(login.server, settings.upstream_port)
        server = ControlChannel(server_sock, "server", settings.max_line_length)
        stack.callback(server.close)
        if settings.control_timeout is not None:
            server_sock.settimeout(settings.control_timeout)
        logger.info("Session %s relaying to %s:%d as %s",
                    self._client_address, login.server, settings.upstream_port, login.login)

        self._enter(SessionState.RECEIVE_SERVER_BANNER)
        self._read_reply(server)

        self._enter(SessionState.SEND_USER)
        self._send(server, login.user_command())

        self._enter(SessionState.RELAY_PASS_REQUEST)
        self._forward_reply(server, client)

        self._enter(SessionState.RECEIVE_PASS)
        self._forward_line(client, server)

        self._enter(SessionState.RELAY_LOGIN_RESULT)
        self._forward_reply(server, client)

        self._enter(SessionState.RELAY_SYST)
        self._forward_line(client, server)
        self._forward_reply(server, client)

        self._enter(SessionState.RECEIVE_PORT)
        active_endpoint = parse_port_command(self._read_line(client))
        logger.debug("Client data endpoint is %s", active_endpoint)

        # Data sockets live in their own stack so they close when the bridge ends
        data = stack.enter_context(ExitStack())

        self._enter(SessionState.OPEN_ACTIVE_DATA)
        active = self._connector(active_endpoint.host, active_endpoint.port)
        data.callback(close_socket, active)

        self._enter(SessionState.NEGOTIATE_PASSIVE)
        self._send(server, PASV_COMMAND)
        passive_endpoint = parse_pasv_reply(self._read_reply(server))
        logger.debug("Server data endpoint is %s", passive_endpoint)

        self._enter(SessionState.OPEN_PASSIVE_DATA)
        passive = self._connector(passive_endpoint.host, passive_endpoint.port)
        data.callback(close_socket, passive)
        passive.settimeout(settings.data_timeout)

        self._enter(SessionState.CONFIRM_PORT)
        self._send(client, PORT_CONFIRMATION)

        self._enter(SessionState.RELAY_LIST)
        self._forward_line(client, server)
        self._forward_reply(server, client)

        self._enter(SessionState.BRIDGE_DATA)
        try:
            result = bridge_data(passive, active, settings.chunk_size)
        finally:
            data.close()
        self._bridge_result = result
        logger.info("Data transfer %s, %d bytes relayed", result.status.value, result.bytes_relayed)

        self._enter(SessionState.RELAY_TRANSFER_COMPLETE)
        self._forward_reply(server, client)

    def _enter(self, state: SessionState) -> None:
        self._state = state
        logger.debug("Session %s: %s", self._client_address, state.value)

    def _read_line(self, channel: ControlChannel) -> bytes:
        line = channel.read_line()
        logger.debug("Received from %s: %r", channel.peer, line)
        return line

    def _read_reply(self, channel: ControlChannel) -> bytes:
        reply = channel.read_reply()
        logger.debug("Received from %s: %r", channel.peer, reply)
        return reply

    def _send(self, channel: ControlChannel, data: bytes) -> None:
        channel.send(data)
        logger.debug("Sent to %s: %r", channel.peer, data)

    def _forward_line(self, source: ControlChannel, destination: ControlChannel) -> None:
        """Forward one command line verbatim."""
        self._send(destination, self._read_line(source))

    def _forward_reply(self, source: ControlChannel, destination: ControlChannel) -> None:
        """Forward one (possibly multi-line) reply verbatim."""
        self._send(destination, self._read_reply(source))

    def _log_failure(self, error: ProxyError) -> None:
        if isinstance(error, PeerClosedError):
            logger.info("Session %s aborted at %s: %s",
                        self._client_address, self._state.value, error)
        elif isinstance(error, (ProtocolSyntaxError, ProxyConnectError)):
            logger.warning("Session %s aborted at %s: %s",
                           self._client_address, self._state.value, error)
        else:
            logger.error("Session %s aborted at %s: %s",
                         self._client_address, self._state.value, error)
