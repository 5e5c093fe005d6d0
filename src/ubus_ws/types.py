"""
Type definitions for ubus-ws

This module contains the data types shared across the ubus-ws package.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ClientState(str, Enum):
    """Connection lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    ACTIVE = "active"


@dataclass
class ClientConfig:
    """Client configuration options."""
    port: int = 80
    secure: bool = False
    connect_timeout: float = 5.0  # seconds
    max_active_calls: int = 5
    raise_on_status: bool = False


@dataclass
class UbusCommand:
    """
    A call to submit to the daemon.

    ``params`` holds ``[object, method, args]``; the session token is
    prepended when the call is sent. ``expected_result`` is informational
    and never checked.
    """
    params: list[Any] = field(default_factory=list)
    method: str = "call"
    expected_result: Any = None

    @classmethod
    def from_mapping(cls, command: Mapping[str, Any]) -> UbusCommand:
        """
        Build a command from a ``{method, params, expectedResult}`` mapping.

        Raises:
            ValueError: If ``params`` is missing or not a list
        """
        params = command.get("params")
        if not isinstance(params, (list, tuple)):
            raise ValueError("command params must be a list")
        expected = command.get("expectedResult", command.get("expected_result"))
        return cls(
            params=list(params),
            method=command.get("method", "call"),
            expected_result=expected,
        )
