"""
Unit tests for the UbusClient connection lifecycle.

Tests cover:
- Opening the WebSocket and logging in
- Login failures and the connect timeout
- Transport failures during login
- Closing and the async context manager
- URL building and constructor options
"""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close

from tests.mock_daemon import TEST_SESSION, FakeWebSocket, login_reply, settle


class TestLogin:
    """Tests for connect() and the login handshake."""

    @pytest.mark.asyncio
    async def test_connect_establishes_session(self, make_client, ws_connect):
        """connect() logs in and marks the client ready."""
        from ubus_ws import ClientState

        client = make_client()
        result = await client.connect()

        assert result == "successfully initiated session"
        assert client.ready is True
        assert client.state is ClientState.ACTIVE
        assert client.session_id == TEST_SESSION
        await client.close()

    @pytest.mark.asyncio
    async def test_connect_uses_ubus_json_subprotocol(self, make_client, ws_connect):
        """The socket is opened with the ubus-json sub-protocol and origin."""
        client = make_client()
        await client.connect()

        ws_connect.assert_awaited_once()
        args, kwargs = ws_connect.call_args
        assert args == ("ws://192.168.1.1:80",)
        assert kwargs["subprotocols"] == ["ubus-json"]
        assert kwargs["origin"] == "ws://192.168.1.1:80"
        await client.close()

    @pytest.mark.asyncio
    async def test_login_frame(self, make_client, fake_ws):
        """The login call uses the all-zero session and session.login."""
        client = make_client()
        await client.connect()

        assert fake_ws.frames[0] == {
            "jsonrpc": "2.0",
            "method": "call",
            "params": [
                "0" * 32,
                "session",
                "login",
                {"username": "admin", "password": "admin"},
            ],
        }
        await client.close()

    @pytest.mark.asyncio
    async def test_session_id_taken_from_login_reply(self, make_client, fake_ws):
        """The session id is result[1].ubus_rpc_session of the login reply."""
        fake_ws.login_reply = login_reply("0123456789abcdef0123456789abcdef")
        client = make_client()
        await client.connect()

        assert client.session_id == "0123456789abcdef0123456789abcdef"
        await client.close()

    @pytest.mark.asyncio
    async def test_connect_twice_keeps_session(self, make_client, ws_connect):
        """A second connect() on a live session is a no-op."""
        client = make_client()
        await client.connect()

        assert await client.connect() == "session already established"
        assert ws_connect.await_count == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_module_level_connect(self, ws_connect):
        """connect() helper returns a logged-in client."""
        from ubus_ws import connect

        client = await connect("192.168.1.1", "admin", "admin", port=8080)

        assert client.ready is True
        assert client.url == "ws://192.168.1.1:8080"
        await client.close()


class TestLoginFailures:
    """Tests for login failures."""

    @pytest.mark.asyncio
    async def test_denied_login_raises_status_label(self, make_client, fake_ws):
        """A login reply without a session raises with the status label."""
        from ubus_ws import AuthenticationError

        fake_ws.login_reply = json.dumps({"jsonrpc": "2.0", "result": [6]})
        client = make_client()

        with pytest.raises(AuthenticationError) as exc_info:
            await client.connect()

        assert exc_info.value.message == "Permission denied"
        assert exc_info.value.status == 6
        assert client.ready is False
        assert client.session_id is None
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_login_reply_not_json(self, make_client, fake_ws):
        """An unparseable login reply fails the login."""
        from ubus_ws import AuthenticationError

        fake_ws.login_reply = "<html>502 Bad Gateway</html>"
        client = make_client()

        with pytest.raises(AuthenticationError) as exc_info:
            await client.connect()

        assert exc_info.value.message == "Unknown error"
        assert exc_info.value.status is None
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_login_reply_success_without_session(self, make_client, fake_ws):
        """Status 0 without a session id is still a failed login."""
        from ubus_ws import AuthenticationError

        fake_ws.login_reply = json.dumps({"jsonrpc": "2.0", "result": [0, {}]})
        client = make_client()

        with pytest.raises(AuthenticationError) as exc_info:
            await client.connect()

        assert exc_info.value.message == "Unknown error"
        assert client.ready is False

    @pytest.mark.asyncio
    async def test_login_failure_is_logged(self, make_client, fake_ws, caplog):
        """The status label of a failed login is logged as an error."""
        import logging

        from ubus_ws import AuthenticationError

        fake_ws.login_reply = json.dumps({"jsonrpc": "2.0", "result": [6]})
        client = make_client()

        with caplog.at_level(logging.ERROR, logger="ubus_ws.client"):
            with pytest.raises(AuthenticationError):
                await client.connect()

        assert "Permission denied" in caplog.text


class TestConnectTimeout:
    """Tests for the login timeout."""

    @pytest.mark.asyncio
    async def test_silent_daemon_times_out(self, make_client, fake_ws):
        """No login reply within connect_timeout raises ConnectTimeoutError."""
        from ubus_ws import ConnectTimeoutError

        fake_ws.login_reply = None
        client = make_client(connect_timeout=0.05)

        with pytest.raises(ConnectTimeoutError) as exc_info:
            await client.connect()

        assert exc_info.value.timeout == 0.05
        assert "could not connect to websocket" in str(exc_info.value)
        assert client.ready is False
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_late_login_reply_is_ignored(self, make_client, fake_ws):
        """A login reply after the timeout never establishes the session."""
        from ubus_ws import ConnectTimeoutError

        fake_ws.login_reply = None
        client = make_client(connect_timeout=0.05)

        with pytest.raises(ConnectTimeoutError):
            await client.connect()

        fake_ws.feed(login_reply())
        await settle()

        assert client.ready is False
        assert client.session_id is None


class TestTransportFailures:
    """Tests for transport failures while connecting."""

    @pytest.mark.asyncio
    async def test_connect_refused(self, make_client, ws_connect):
        """A failed WebSocket open raises TransportError."""
        from ubus_ws import TransportError

        ws_connect.side_effect = OSError("Connection refused")
        client = make_client()

        with pytest.raises(TransportError) as exc_info:
            await client.connect()

        assert "Connection refused" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, OSError)
        assert client.ready is False

    @pytest.mark.asyncio
    async def test_close_during_login(self, make_client, fake_ws):
        """The daemon closing the socket before replying fails connect()."""
        from ubus_ws import TransportError

        fake_ws.login_reply = None
        client = make_client()

        task = asyncio.create_task(client.connect())
        await settle()
        fake_ws.drop()

        with pytest.raises(TransportError):
            await task
        assert client.ready is False

    @pytest.mark.asyncio
    async def test_error_during_login(self, make_client, fake_ws):
        """An abnormal close before the login reply fails connect()."""
        from ubus_ws import TransportError

        fake_ws.login_reply = None
        client = make_client()

        task = asyncio.create_task(client.connect())
        await settle()
        fake_ws.drop(ConnectionClosedError(Close(1011, "internal error"), None))

        with pytest.raises(TransportError) as exc_info:
            await task
        assert "connection closed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_login_send_failure(self, make_client, fake_ws):
        """A login frame the transport refuses fails connect()."""
        from ubus_ws import TransportError

        fake_ws.send_error = OSError("Broken pipe")
        client = make_client()

        with pytest.raises(TransportError) as exc_info:
            await client.connect()

        assert "could not send login" in exc_info.value.message
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_remote_close_marks_not_ready(self, client, fake_ws):
        """The daemon closing an established session marks the client not ready."""
        seen = []
        client.on_disconnected = seen.append

        fake_ws.drop()
        await settle()

        assert client.ready is False
        assert len(seen) == 1
        assert seen[0].message == "connection closed"


class TestClose:
    """Tests for close() and the context manager."""

    @pytest.mark.asyncio
    async def test_close_open_session(self, make_client, fake_ws):
        """close() on a live session closes the socket."""
        client = make_client()
        await client.connect()

        assert await client.close() == "Socket closed"
        assert fake_ws.closed is True
        assert client.ready is False

    @pytest.mark.asyncio
    async def test_close_without_session(self, make_client, fake_ws):
        """close() without a session reports that nothing was open."""
        client = make_client()

        assert await client.close() == "No socket open!"
        assert fake_ws.closed is False

    @pytest.mark.asyncio
    async def test_close_twice(self, make_client):
        """close() is safe to repeat."""
        client = make_client()
        await client.connect()

        assert await client.close() == "Socket closed"
        assert await client.close() == "No socket open!"

    @pytest.mark.asyncio
    async def test_context_manager(self, make_client, fake_ws):
        """async with connects on entry and closes on exit."""
        async with make_client() as client:
            assert client.ready is True

        assert client.ready is False
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_context_manager_closes_on_error(self, make_client, fake_ws):
        """The context manager closes the socket when the body raises."""
        with pytest.raises(ValueError):
            async with make_client():
                raise ValueError("Test error")

        assert fake_ws.closed is True


class TestClientOptions:
    """Tests for URL building and constructor options."""

    def test_build_ws_url(self):
        """Host and port become a ws:// URL."""
        from ubus_ws import build_ws_url

        assert build_ws_url("192.168.1.1") == "ws://192.168.1.1:80"
        assert build_ws_url("router.lan", 8080) == "ws://router.lan:8080"
        assert build_ws_url("router.lan", 443, secure=True) == "wss://router.lan:443"

    def test_build_ws_url_keeps_full_url(self):
        """A host that is already a WebSocket URL is used as is."""
        from ubus_ws import build_ws_url

        assert build_ws_url("ws://10.0.0.1:8080/ubus") == "ws://10.0.0.1:8080/ubus"
        assert build_ws_url("wss://router.lan") == "wss://router.lan"

    def test_defaults_come_from_config(self):
        """Unset options fall back to the global configuration."""
        from ubus_ws import UbusClient, configure

        configure(port=8080, max_active_calls=7, connect_timeout=2.5)
        client = UbusClient("router.lan", "admin", "admin")

        assert client.url == "ws://router.lan:8080"
        assert client._max_active_calls == 7
        assert client._connect_timeout == 2.5

    def test_explicit_options_override_config(self):
        """Keyword options win over the config object."""
        from ubus_ws import ClientConfig, UbusClient

        config = ClientConfig(port=8080, max_active_calls=3)
        client = UbusClient("router.lan", "admin", "admin", port=81, config=config)

        assert client.url == "ws://router.lan:81"
        assert client._max_active_calls == 3

    def test_rejects_invalid_limits(self):
        """A cap below 1 or a non-positive timeout is refused."""
        from ubus_ws import UbusClient

        with pytest.raises(ValueError):
            UbusClient("router.lan", "admin", "admin", max_active_calls=0)
        with pytest.raises(ValueError):
            UbusClient("router.lan", "admin", "admin", connect_timeout=0)

    def test_fresh_client_state(self):
        """A new client is disconnected with empty counters."""
        from ubus_ws import ClientState, UbusClient

        client = UbusClient("router.lan", "admin", "admin")

        assert client.state is ClientState.DISCONNECTED
        assert client.ready is False
        assert client.session_id is None
        assert client.in_flight == 0
        assert client.queued == 0
        assert client.pending == 0
