"""
ubus-ws - ubus client for WebSocket JSON-RPC bridges.

This package talks to the ubus bus of an OpenWrt style device through a
WebSocket daemon speaking the ``ubus-json`` sub-protocol, with support for:
- Session login on connect
- Concurrent calls correlated by id, with a cap on calls in flight
- Mapping of ubus status codes to readable labels
- Async/await native API

Example usage:
    from ubus_ws import connect

    async def main():
        client = await connect("192.168.1.1", "admin", "admin")

        board = await client.call("system", "board")
        print(board["model"])

        # Failures come back as status labels
        result = await client.call("router.wps", "checkpin", {"pin": "1234"})
        if result == "Permission denied":
            ...

        await client.close()

    import asyncio
    asyncio.run(main())
"""

from __future__ import annotations

__version__ = "0.1.0"

from .client import UbusClient, build_ws_url, connect
from .config import configure, configure_from_env, get_config
from .errors import (
    AuthenticationError,
    ConnectTimeoutError,
    ErrorCode,
    MalformedResponseError,
    NotReadyError,
    SendError,
    TransportError,
    UbusError,
    UbusStatusError,
    is_error_code,
)
from .status import STATUS_LABELS, UbusStatus, status_label
from .types import ClientConfig, ClientState, UbusCommand

__all__ = [
    # Main API
    "connect",
    "UbusClient",
    "UbusCommand",
    "ClientState",
    "build_ws_url",
    # Configuration
    "ClientConfig",
    "configure",
    "configure_from_env",
    "get_config",
    # Status codes
    "UbusStatus",
    "STATUS_LABELS",
    "status_label",
    # Errors
    "ErrorCode",
    "UbusError",
    "TransportError",
    "NotReadyError",
    "SendError",
    "UbusStatusError",
    "AuthenticationError",
    "ConnectTimeoutError",
    "MalformedResponseError",
    "is_error_code",
    # Version
    "__version__",
]
