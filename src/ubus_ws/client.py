"""
UbusClient - ubus calls over a WebSocket JSON-RPC bridge.

The client logs in once to obtain a ubus session, then sends calls that
are correlated with their replies by call id. At most ``max_active_calls``
calls are on the wire at a time; the rest wait in a FIFO queue.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.typing import Origin, Subprotocol

from .config import get_config
from .envelope import (
    decode_frame,
    encode_request,
    login_request,
    recover_call_id,
    response_call_id,
)
from .errors import (
    AuthenticationError,
    ConnectTimeoutError,
    MalformedResponseError,
    NotReadyError,
    SendError,
    TransportError,
    UbusError,
    UbusStatusError,
)
from .status import UbusStatus, status_label
from .types import ClientConfig, ClientState, UbusCommand

__all__ = ["UbusClient", "connect", "build_ws_url", "SUBPROTOCOL"]

logger = logging.getLogger(__name__)

SUBPROTOCOL = "ubus-json"


def build_ws_url(host: str, port: int = 80, secure: bool = False) -> str:
    """
    Build the WebSocket URL for a daemon.

    Args:
        host: Host name or address, or a full ``ws://``/``wss://`` URL
        port: TCP port
        secure: Use ``wss://``

    Returns:
        WebSocket URL
    """
    if host.startswith("ws://") or host.startswith("wss://"):
        return host
    scheme = "wss" if secure else "ws"
    return f"{scheme}://{host}:{port}"


@dataclass
class PendingCall:
    """A submitted call waiting for its reply."""

    call_id: int
    future: asyncio.Future[Any]

    def resolve(self, value: Any) -> None:
        # set_result raises InvalidStateError on a second fulfilment
        if self.future.cancelled():
            return
        self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if self.future.cancelled():
            return
        self.future.set_exception(error)


@dataclass(frozen=True)
class QueuedCall:
    """A serialized call waiting for a free slot."""

    call_id: int
    payload: str


class UbusClient:
    """
    ubus client for a WebSocket JSON-RPC bridge such as owsd.

    Example:
        async with UbusClient("192.168.1.1", "admin", "admin") as client:
            status = await client.call("network.interface.lan", "status")

    Non-zero ubus status codes are returned as their label (for example
    ``"Permission denied"``) unless the client is created with
    ``raise_on_status=True``, in which case UbusStatusError is raised.
    """

    __slots__ = (
        "_url",
        "_username",
        "_password",
        "_connect_timeout",
        "_max_active_calls",
        "_raise_on_status",
        "_ws",
        "_state",
        "_session_id",
        "_next_id",
        "_in_flight",
        "_pending",
        "_sent",
        "_queue",
        "_login_waiter",
        "_receive_task",
        "on_diagnostic",
        "on_disconnected",
    )

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        *,
        port: int | None = None,
        secure: bool | None = None,
        connect_timeout: float | None = None,
        max_active_calls: int | None = None,
        raise_on_status: bool | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        """
        Initialize the client. No connection is made until connect().

        Args:
            host: Daemon host, or a full ``ws://``/``wss://`` URL
            username: ubus session user
            password: ubus session password
            port: WebSocket port (default from config: 80)
            secure: Use ``wss://`` (default from config: False)
            connect_timeout: Seconds to wait for the login reply
            max_active_calls: Calls allowed in flight at once
            raise_on_status: Raise on non-zero status instead of returning the label
            config: Base configuration; defaults to get_config()
        """
        base = config if config is not None else get_config()
        port = base.port if port is None else port
        secure = base.secure if secure is None else secure
        connect_timeout = base.connect_timeout if connect_timeout is None else connect_timeout
        max_active_calls = base.max_active_calls if max_active_calls is None else max_active_calls
        raise_on_status = base.raise_on_status if raise_on_status is None else raise_on_status

        if connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if max_active_calls < 1:
            raise ValueError("max_active_calls must be at least 1")

        self._url = build_ws_url(host, port, secure)
        self._username = username
        self._password = password
        self._connect_timeout = connect_timeout
        self._max_active_calls = max_active_calls
        self._raise_on_status = raise_on_status

        self._ws: Any = None
        self._state = ClientState.DISCONNECTED
        self._session_id: str | None = None
        self._next_id = 0
        self._in_flight = 0
        self._pending: dict[int, PendingCall] = {}
        self._sent: set[int] = set()
        self._queue: deque[QueuedCall] = deque()
        self._login_waiter: asyncio.Future[str] | None = None
        self._receive_task: asyncio.Task[None] | None = None

        # Event hooks (optional)
        self.on_diagnostic: Callable[[UbusError], None] | None = None
        self.on_disconnected: Callable[[UbusError], None] | None = None

    # --------------------------
    # State
    # --------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def ready(self) -> bool:
        """True once a session is established and until the connection ends."""
        return self._state is ClientState.ACTIVE

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def in_flight(self) -> int:
        """Calls sent and not yet answered."""
        return self._in_flight

    @property
    def queued(self) -> int:
        """Calls waiting for a free slot."""
        return len(self._queue)

    @property
    def pending(self) -> int:
        """Calls submitted and not yet settled, queued ones included."""
        return len(self._pending)

    # --------------------------
    # Connection lifecycle
    # --------------------------

    async def connect(self) -> str:
        """
        Open the WebSocket and log in.

        Returns:
            A confirmation message

        Raises:
            ConnectTimeoutError: No login reply within connect_timeout
            AuthenticationError: The login reply carried no session token
            TransportError: The connection failed or closed during login
        """
        if self._state is ClientState.ACTIVE:
            return "session already established"
        if self._state is not ClientState.DISCONNECTED:
            raise TransportError(f"connection attempt already in progress ({self._state.value})")

        self._session_id = None
        self._next_id = 0
        self._state = ClientState.CONNECTING
        logger.info("trying to open websocket connection towards %s", self._url)

        try:
            await asyncio.wait_for(self._open_and_login(), timeout=self._connect_timeout)
        except asyncio.TimeoutError:
            logger.info("opening websocket timed out: %s", self._url)
            await self._teardown()
            raise ConnectTimeoutError(timeout=self._connect_timeout) from None
        except UbusError:
            await self._teardown()
            raise

        return "successfully initiated session"

    async def close(self) -> str:
        """
        Close the connection if a session is open.

        Calls still outstanding are failed with TransportError.

        Returns:
            ``"Socket closed"``, or ``"No socket open!"`` if there was no session
        """
        if self._state is not ClientState.ACTIVE:
            return "No socket open!"

        logger.info("closing websocket connection towards %s", self._url)
        await self._teardown()
        return "Socket closed"

    async def _open_and_login(self) -> None:
        try:
            self._ws = await ws_connect(
                self._url,
                subprotocols=[Subprotocol(SUBPROTOCOL)],
                origin=Origin(self._url),
            )
        except (OSError, InvalidHandshake, InvalidURI) as e:
            raise TransportError(f"could not open {self._url}: {e}") from e

        logger.info("connected to %s", self._url)

        self._login_waiter = asyncio.get_running_loop().create_future()
        self._state = ClientState.AWAITING_AUTH
        self._receive_task = asyncio.create_task(self._receive_loop(self._ws))

        logger.debug("> session login for user %s", self._username)
        try:
            await self._ws.send(login_request(self._username, self._password))
        except (ConnectionClosed, OSError) as e:
            raise TransportError(f"could not send login: {e}") from e

        await self._login_waiter

    async def _receive_loop(self, ws: Any) -> None:
        """Background task that feeds inbound frames to _dispatch."""
        try:
            async for message in ws:
                await self._dispatch(message)
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else None
            logger.info("connection closed, code: %s", code)
            self._handle_disconnect(TransportError(f"connection closed: {e}"))
        except OSError as e:
            logger.error("websocket error: %s", e)
            self._handle_disconnect(TransportError(f"websocket error: {e}"))
        except Exception as e:
            logger.exception("unexpected error while handling a frame from %s", self._url)
            self._handle_disconnect(TransportError(f"receive loop failed: {e}"))
            await ws.close()
        else:
            logger.info("connection closed")
            self._handle_disconnect(TransportError("connection closed"))

    def _handle_disconnect(self, error: TransportError) -> None:
        """The remote end went away: drop the session and fail everything waiting on it."""
        self._state = ClientState.DISCONNECTED
        self._ws = None
        self._receive_task = None

        waiter = self._login_waiter
        if waiter is not None and not waiter.done():
            waiter.set_exception(error)

        self._fail_outstanding(error)

        if self.on_disconnected is not None:
            try:
                self.on_disconnected(error)
            except Exception:
                logger.exception("on_disconnected hook failed")

    async def _teardown(self) -> None:
        self._state = ClientState.DISCONNECTED

        task, self._receive_task = self._receive_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

        self._fail_outstanding(TransportError("connection closed by client"))

    def _fail_outstanding(self, error: UbusError) -> None:
        pending, self._pending = self._pending, {}
        self._sent.clear()
        self._queue.clear()
        self._in_flight = 0

        if pending:
            logger.warning("failing %d outstanding call(s): %s", len(pending), error.message)
        for call in pending.values():
            call.reject(error)

    # --------------------------
    # Calls
    # --------------------------

    async def call(
        self,
        object_path: str,
        method: str,
        args: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Call ``method`` on ubus object ``object_path``.

        Example:
            info = await client.call("system", "board")
        """
        return await self.submit(UbusCommand(params=[object_path, method, dict(args or {})]))

    async def submit(self, command: UbusCommand | Mapping[str, Any]) -> Any:
        """
        Submit a call and wait for its reply.

        Args:
            command: A UbusCommand, or a mapping like
                ``{"method": "call", "params": ["system", "board", {}]}``

        Returns:
            The reply payload for status 0, otherwise the status label

        Raises:
            NotReadyError: No session is established
            SendError: The frame could not be sent
            UbusStatusError: The daemon returned a JSON-RPC error (or a
                non-zero status with raise_on_status)
            MalformedResponseError: The reply could not be parsed
            TransportError: The connection ended before the reply arrived
        """
        if self._state is not ClientState.ACTIVE:
            raise NotReadyError()

        if not isinstance(command, UbusCommand):
            command = UbusCommand.from_mapping(command)

        call_id = self._next_id
        self._next_id += 1

        payload = encode_request(command.method, [self._session_id, *command.params], call_id)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[call_id] = PendingCall(call_id, future)

        if self._in_flight < self._max_active_calls:
            self._in_flight += 1
            try:
                await self._transmit(call_id, payload)
            except asyncio.CancelledError:
                await self._abandon(call_id)
                raise
        else:
            logger.debug("queueing call %d, %d in flight", call_id, self._in_flight)
            self._queue.append(QueuedCall(call_id, payload))

        return await future

    async def _transmit(self, call_id: int, payload: str) -> None:
        """Send one frame; the caller has already taken an in-flight slot."""
        ws = self._ws
        if ws is None:
            self._send_failed(call_id, TransportError("connection is not open"))
            return

        logger.debug("> %s", payload)
        self._sent.add(call_id)
        try:
            await ws.send(payload)
        except (ConnectionClosed, OSError) as e:
            self._send_failed(call_id, e)

    def _send_failed(self, call_id: int, cause: BaseException) -> None:
        pending = self._pending.pop(call_id, None)
        if pending is None:
            # Already failed by a disconnect
            return
        self._sent.discard(call_id)
        self._in_flight -= 1
        logger.warning("could not send call %d: %s", call_id, cause)
        error = SendError(f"could not send call {call_id}: {cause}", call_id=call_id)
        error.__cause__ = cause
        pending.reject(error)

    async def _abandon(self, call_id: int) -> None:
        """Give back the slot of a call whose caller was cancelled mid-send."""
        if self._pending.pop(call_id, None) is None:
            return
        self._sent.discard(call_id)
        logger.debug("call %d cancelled while sending, releasing its slot", call_id)
        await self._release_slot()

    async def _drain(self) -> None:
        """Send queued calls, oldest first, while slots are free."""
        while self._queue and self._in_flight < self._max_active_calls:
            queued = self._queue.popleft()
            pending = self._pending.get(queued.call_id)
            if pending is None or pending.future.cancelled():
                self._pending.pop(queued.call_id, None)
                continue
            self._in_flight += 1
            await self._transmit(queued.call_id, queued.payload)

    # --------------------------
    # Inbound frames
    # --------------------------

    async def _dispatch(self, message: str | bytes) -> None:
        logger.debug("< %s", message)
        if self._state is ClientState.AWAITING_AUTH:
            self._on_login_response(message)
        elif self._state is ClientState.ACTIVE:
            await self._on_call_response(message)
        else:
            logger.debug("dropping frame received while %s", self._state.value)

    def _on_login_response(self, message: str | bytes) -> None:
        """Treat the first inbound frame as the login reply."""
        waiter = self._login_waiter
        if waiter is None or waiter.done():
            return

        status: Any = None
        token: Any = None
        try:
            response = decode_frame(message)
            result = response.get("result")
            if isinstance(result, list) and result:
                status = result[0]
            token = result[1]["ubus_rpc_session"]
        except (MalformedResponseError, LookupError, TypeError):
            pass

        if not isinstance(token, str) or not token:
            if status == UbusStatus.OK:
                status = None
            label = status_label(status)
            logger.error("login failed: %s", label)
            waiter.set_exception(
                AuthenticationError(label, status=status if isinstance(status, int) else None)
            )
            return

        self._session_id = token
        self._state = ClientState.ACTIVE
        logger.info("session established with %s", self._url)
        logger.debug("session id: %s", token)
        waiter.set_result(token)

    async def _on_call_response(self, message: str | bytes) -> None:
        try:
            response = decode_frame(message)
        except MalformedResponseError as e:
            call_id = recover_call_id(message)
            pending = self._take_sent(call_id)
            if pending is None:
                logger.error("dropping malformed frame with no known call id: %.200r", message)
                self._diagnose(MalformedResponseError(e.message, call_id=call_id))
                return
            await self._release_slot()
            pending.reject(MalformedResponseError(e.message, call_id=call_id))
            return

        call_id = response_call_id(response)
        pending = self._take_sent(call_id)
        if pending is None:
            logger.warning(
                "inconsistent response from ubus, no call in flight with id %r",
                response.get("id"),
            )
            self._diagnose(
                MalformedResponseError(
                    f"inconsistent response from ubus: unknown id {response.get('id')!r}",
                    call_id=call_id,
                )
            )
            return

        await self._release_slot()
        self._settle(pending, response)

    def _take_sent(self, call_id: int | None) -> PendingCall | None:
        """Remove and return the call with this id if it is on the wire."""
        if call_id is None or call_id not in self._sent:
            return None
        self._sent.discard(call_id)
        return self._pending.pop(call_id, None)

    async def _release_slot(self) -> None:
        self._in_flight -= 1
        await self._drain()

    def _settle(self, pending: PendingCall, response: dict[str, Any]) -> None:
        error = response.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            pending.reject(
                UbusStatusError(
                    str(error.get("message", "unknown error")),
                    status=code if isinstance(code, int) else None,
                    call_id=pending.call_id,
                )
            )
            return

        result = response.get("result")
        if (
            not isinstance(result, list)
            or not result
            or isinstance(result[0], bool)
            or not isinstance(result[0], int)
        ):
            pending.reject(
                MalformedResponseError("response has no result status", call_id=pending.call_id)
            )
            return

        status = result[0]
        if status == UbusStatus.OK:
            pending.resolve(result[1] if len(result) > 1 else None)
        elif self._raise_on_status:
            pending.reject(
                UbusStatusError(status_label(status), status=status, call_id=pending.call_id)
            )
        else:
            pending.resolve(status_label(status))

    def _diagnose(self, error: UbusError) -> None:
        if self.on_diagnostic is not None:
            try:
                self.on_diagnostic(error)
            except Exception:
                logger.exception("on_diagnostic hook failed")

    async def __aenter__(self) -> UbusClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()


async def connect(host: str, username: str, password: str, **options: Any) -> UbusClient:
    """
    Connect and log in to a ubus WebSocket daemon.

    Args:
        host: Daemon host, or a full ``ws://``/``wss://`` URL
        username: ubus session user
        password: ubus session password
        **options: Keyword options accepted by UbusClient
            - port, secure, connect_timeout, max_active_calls,
              raise_on_status, config

    Returns:
        Connected UbusClient instance

    Example:
        client = await connect("192.168.1.1", "admin", "admin")
        board = await client.call("system", "board")
        await client.close()
    """
    client = UbusClient(host, username, password, **options)
    await client.connect()
    return client
