"""Unit tests for ControlChannel and the connect() primitive."""

import socket

import pytest
from unittest.mock import MagicMock, patch

from ftp_relay.proxy.channel import ControlChannel, close_socket, connect
from ftp_relay.proxy.exceptions import (
    ChannelIOError,
    LineTooLongError,
    PeerClosedError,
    ProxyConnectError,
)


class TestReadLine:
    """Tests for ControlChannel.read_line."""

    def test_reads_one_line_verbatim(self, socket_pair):
        """Test line is returned with its CRLF terminator."""
        near, far = socket_pair()
        far.sendall(b"SYST\r\n")

        channel = ControlChannel(near, "client")
        assert channel.read_line() == b"SYST\r\n"

    def test_buffers_lines_received_together(self, socket_pair):
        """Test several lines in one segment are returned one at a time."""
        near, far = socket_pair()
        far.sendall(b"SYST\r\nPORT 1,2,3,4,5,6\r\nLIST\r\n")

        channel = ControlChannel(near, "client")
        assert channel.read_line() == b"SYST\r\n"
        assert channel.read_line() == b"PORT 1,2,3,4,5,6\r\n"
        assert channel.read_line() == b"LIST\r\n"

    def test_line_split_across_segments(self, socket_pair):
        """Test a line arriving in pieces is reassembled."""
        near, far = socket_pair()
        far.sendall(b"PAS")
        channel = ControlChannel(near, "client")
        far.sendall(b"S secret\r\n")

        assert channel.read_line() == b"PASS secret\r\n"

    def test_peer_closed(self, socket_pair):
        """Test zero-byte read raises PeerClosedError."""
        near, far = socket_pair()
        far.close()

        channel = ControlChannel(near, "server")
        with pytest.raises(PeerClosedError) as exc_info:
            channel.read_line()
        assert exc_info.value.peer == "server"

    def test_peer_closed_mid_line(self, socket_pair):
        """Test an unterminated line followed by close is a peer close."""
        near, far = socket_pair()
        far.sendall(b"220 partial")
        far.close()

        with pytest.raises(PeerClosedError):
            ControlChannel(near, "server").read_line()

    def test_line_too_long(self, socket_pair):
        """Test lines beyond the limit are rejected."""
        near, far = socket_pair()
        far.sendall(b"A" * 100 + b"\r\n")

        channel = ControlChannel(near, "client", max_line_length=64)
        with pytest.raises(LineTooLongError) as exc_info:
            channel.read_line()
        assert exc_info.value.limit == 64

    def test_line_at_limit_is_accepted(self, socket_pair):
        """Test a line exactly max_line_length long, terminator included."""
        near, far = socket_pair()
        line = b"A" * 62 + b"\r\n"
        far.sendall(line)

        assert ControlChannel(near, "client", max_line_length=64).read_line() == line

    def test_read_error(self):
        """Test socket errors become ChannelIOError."""
        sock = MagicMock()
        sock.recv.side_effect = ConnectionResetError("reset")

        with pytest.raises(ChannelIOError) as exc_info:
            ControlChannel(sock, "client").read_line()
        assert isinstance(exc_info.value.original_error, ConnectionResetError)


class TestReadReply:
    """Tests for ControlChannel.read_reply."""

    def test_single_line_reply(self, socket_pair):
        """Test a one-line reply."""
        near, far = socket_pair()
        far.sendall(b"331 Password required\r\n")

        assert ControlChannel(near, "server").read_reply() == b"331 Password required\r\n"

    def test_multiline_reply(self, socket_pair):
        """Test a multi-line reply is read whole and byte-identical."""
        near, far = socket_pair()
        reply = b"230-Welcome\r\n230-Be nice\r\n 230 indented text\r\n230 Logged in\r\n"
        far.sendall(reply + b"215 UNIX\r\n")

        channel = ControlChannel(near, "server")
        assert channel.read_reply() == reply
        assert channel.read_reply() == b"215 UNIX\r\n"


class TestSendAndClose:
    """Tests for ControlChannel.send and close."""

    def test_send(self, socket_pair):
        """Test data reaches the peer unchanged."""
        near, far = socket_pair()
        ControlChannel(near, "client").send(b"220 hello\r\n")

        assert far.recv(100) == b"220 hello\r\n"

    def test_send_error(self):
        """Test write failures become ChannelIOError."""
        sock = MagicMock()
        sock.sendall.side_effect = BrokenPipeError("gone")

        with pytest.raises(ChannelIOError) as exc_info:
            ControlChannel(sock, "client").send(b"x")
        assert exc_info.value.operation == "write to"

    def test_close_is_idempotent(self):
        """Test closing twice closes the socket once."""
        sock = MagicMock()
        channel = ControlChannel(sock, "client")

        channel.close()
        channel.close()

        assert channel.closed is True
        sock.close.assert_called_once()

    def test_close_socket_ignores_errors(self):
        """Test close_socket swallows OSError and accepts None."""
        sock = MagicMock()
        sock.close.side_effect = OSError("bad fd")

        close_socket(sock)
        close_socket(None)


class TestConnect:
    """Tests for the connect() primitive."""

    @patch("ftp_relay.proxy.channel.socket.create_connection")
    def test_connect_success(self, mock_create):
        """Test a connected blocking socket is returned."""
        mock_sock = MagicMock()
        mock_create.return_value = mock_sock

        assert connect("10.0.0.9", 80) is mock_sock
        mock_create.assert_called_once_with(("10.0.0.9", 80), timeout=None)
        mock_sock.settimeout.assert_called_once_with(None)

    @patch("ftp_relay.proxy.channel.socket.create_connection")
    def test_connect_refused(self, mock_create):
        """Test connection failures raise ProxyConnectError."""
        mock_create.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(ProxyConnectError) as exc_info:
            connect("10.0.0.5", 51210)
        assert exc_info.value.host == "10.0.0.5"
        assert exc_info.value.port == 51210
        assert "10.0.0.5:51210" in str(exc_info.value)

    @patch("ftp_relay.proxy.channel.socket.create_connection")
    def test_connect_timeout(self, mock_create):
        """Test connect timeouts raise ProxyConnectError."""
        mock_create.side_effect = socket.timeout("timed out")

        with pytest.raises(ProxyConnectError):
            connect("10.0.0.5", 51210, timeout=1)

    @pytest.mark.parametrize("host", ["a..b", "x" * 70 + ".com"])
    def test_unencodable_host_name(self, host):
        """Test names the IDNA codec rejects raise ProxyConnectError."""
        with pytest.raises(ProxyConnectError) as exc_info:
            connect(host, 21)

        assert exc_info.value.host == host
        assert isinstance(exc_info.value.original_error, UnicodeError)

    def test_connect_real_listener(self):
        """Test connecting to a local listening socket."""
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        try:
            sock = connect("127.0.0.1", listener.getsockname()[1])
            sock.close()
        finally:
            listener.close()
