"""
ubus status codes.

Every reply from the daemon carries a numeric status as the first element
of its ``result`` pair. This module maps those numbers to the labels the
client hands back to callers.
"""

from __future__ import annotations

from enum import IntEnum

__all__ = ["UbusStatus", "STATUS_LABELS", "status_label"]


class UbusStatus(IntEnum):
    """Status codes returned by ubus, in table order."""

    OK = 0
    INVALID_COMMAND = 1
    INVALID_ARGUMENT = 2
    METHOD_NOT_FOUND = 3
    NOT_FOUND = 4
    NO_DATA = 5
    PERMISSION_DENIED = 6
    TIMEOUT = 7
    NOT_SUPPORTED = 8
    UNKNOWN_ERROR = 9
    CONNECTION_FAILED = 10


# Indexed by status code
STATUS_LABELS: tuple[str, ...] = (
    "Success",
    "Invalid command",
    "Invalid argument",
    "Method not found",
    "Not found",
    "No response",
    "Permission denied",
    "Request timed out",
    "Operation not supported",
    "Unknown error",
    "Connection failed",
)


def status_label(code: object) -> str:
    """
    Look up the label for a status code.

    Args:
        code: Status code from a ``result`` pair

    Returns:
        The table label, or ``"Unknown error"`` for anything that is not
        an in-range integer
    """
    if isinstance(code, bool) or not isinstance(code, int):
        return STATUS_LABELS[UbusStatus.UNKNOWN_ERROR]
    if 0 <= code < len(STATUS_LABELS):
        return STATUS_LABELS[code]
    return STATUS_LABELS[UbusStatus.UNKNOWN_ERROR]
