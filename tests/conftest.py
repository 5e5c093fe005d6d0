"""
Pytest configuration and fixtures for ubus-ws tests.

This module provides fixtures for:
- A fake daemon WebSocket patched in place of websockets' connect()
- Clients that are already logged in
- Resetting the global configuration between tests

No daemon or network access is needed.
"""

from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest

from tests.mock_daemon import FakeWebSocket, login_reply


# ============================================================================
# Configuration
# ============================================================================

@pytest.fixture(autouse=True)
def reset_config():
    """Restore global client defaults after every test."""
    from ubus_ws import config

    saved = dict(config._global_config)
    yield
    config._global_config.clear()
    config._global_config.update(saved)


# ============================================================================
# Transport Fixtures
# ============================================================================

@pytest.fixture
def fake_ws() -> FakeWebSocket:
    """A fake daemon socket that answers the login call."""
    return FakeWebSocket(login_reply=login_reply())


@pytest.fixture
def ws_connect(fake_ws: FakeWebSocket):
    """Patch websockets' connect() to hand out ``fake_ws``."""
    with patch("ubus_ws.client.ws_connect", AsyncMock(return_value=fake_ws)) as mock:
        yield mock


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def make_client(ws_connect):
    """Factory for clients wired to the fake socket."""
    from ubus_ws import UbusClient

    def factory(**options: Any) -> UbusClient:
        return UbusClient("192.168.1.1", "admin", "admin", **options)

    return factory


@pytest.fixture
async def client(make_client) -> AsyncGenerator[Any, None]:
    """A logged-in client with a concurrency cap of 2."""
    client = make_client(max_active_calls=2)
    await client.connect()
    yield client
    await client.close()
