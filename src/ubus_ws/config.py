"""
Configuration management for ubus-ws

This module provides global defaults for new clients.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import ClientConfig

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _get_env(key: str) -> str | None:
    """Get environment variable value."""
    return os.environ.get(key)


def _get_env_int(key: str) -> int | None:
    value = _get_env(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s: not an integer: %r", key, value)
        return None


def _get_env_float(key: str) -> float | None:
    value = _get_env(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s: not a number: %r", key, value)
        return None


def _get_env_bool(key: str) -> bool | None:
    value = _get_env(key)
    if value is None:
        return None
    if value.strip().lower() in _TRUE_VALUES:
        return True
    if value.strip().lower() in _FALSE_VALUES:
        return False
    logger.warning("Ignoring %s: not a boolean: %r", key, value)
    return None


# Global configuration
_global_config: dict[str, int | float | bool] = {
    "port": 80,
    "secure": False,
    "connect_timeout": 5.0,
    "max_active_calls": 5,
    "raise_on_status": False,
}


def configure(
    *,
    port: int | None = None,
    secure: bool | None = None,
    connect_timeout: float | None = None,
    max_active_calls: int | None = None,
    raise_on_status: bool | None = None,
) -> None:
    """
    Configure client defaults.

    Args:
        port: WebSocket port of the daemon (default: 80)
        secure: Use ``wss://`` instead of ``ws://`` (default: False)
        connect_timeout: Seconds to wait for the login reply (default: 5.0)
        max_active_calls: Calls allowed in flight at once (default: 5)
        raise_on_status: Raise UbusStatusError for non-zero status codes
            instead of returning the status label (default: False)

    Example::

        from ubus_ws import configure

        configure(port=8080, max_active_calls=10)
    """
    global _global_config

    if port is not None:
        _global_config["port"] = port
    if secure is not None:
        _global_config["secure"] = secure
    if connect_timeout is not None:
        _global_config["connect_timeout"] = connect_timeout
    if max_active_calls is not None:
        _global_config["max_active_calls"] = max_active_calls
    if raise_on_status is not None:
        _global_config["raise_on_status"] = raise_on_status


def get_config() -> "ClientConfig":
    """
    Get current client defaults.

    Returns:
        A fresh ClientConfig built from the global settings
    """
    from .types import ClientConfig

    return ClientConfig(
        port=int(_global_config["port"]),
        secure=bool(_global_config["secure"]),
        connect_timeout=float(_global_config["connect_timeout"]),
        max_active_calls=int(_global_config["max_active_calls"]),
        raise_on_status=bool(_global_config["raise_on_status"]),
    )


def configure_from_env() -> None:
    """
    Configure client defaults from environment variables.

    Reads from:
        - UBUS_WS_PORT
        - UBUS_WS_SECURE
        - UBUS_WS_CONNECT_TIMEOUT
        - UBUS_WS_MAX_ACTIVE_CALLS
        - UBUS_WS_RAISE_ON_STATUS
    """
    configure(
        port=_get_env_int("UBUS_WS_PORT"),
        secure=_get_env_bool("UBUS_WS_SECURE"),
        connect_timeout=_get_env_float("UBUS_WS_CONNECT_TIMEOUT"),
        max_active_calls=_get_env_int("UBUS_WS_MAX_ACTIVE_CALLS"),
        raise_on_status=_get_env_bool("UBUS_WS_RAISE_ON_STATUS"),
    )
