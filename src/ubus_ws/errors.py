"""
Error types for the ubus WebSocket client.

Error Code Ranges:
- 1xxx: Connection errors
- 2xxx: Remote call errors
- 3xxx: Timeout errors
- 5xxx: Serialization errors
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


# ============================================================================
# Error Codes
# ============================================================================


class ErrorCode(IntEnum):
    """Error codes carried by every UbusError."""

    # Transport closed or failed
    TRANSPORT_ERROR = 1001

    # Call submitted before the session was established
    NOT_READY = 1002

    # Frame could not be handed to the transport
    SEND_ERROR = 1003

    # Daemon answered with a failure status or JSON-RPC error object
    STATUS_ERROR = 2001

    # Login rejected or login reply unusable
    AUTH_ERROR = 2002

    # No login reply within the connect timeout
    CONNECT_TIMEOUT = 3001

    # Inbound frame is not a usable JSON-RPC envelope
    MALFORMED_RESPONSE = 5001


ERROR_CODE_NAMES: dict[ErrorCode, str] = {
    ErrorCode.TRANSPORT_ERROR: "TRANSPORT_ERROR",
    ErrorCode.NOT_READY: "NOT_READY",
    ErrorCode.SEND_ERROR: "SEND_ERROR",
    ErrorCode.STATUS_ERROR: "STATUS_ERROR",
    ErrorCode.AUTH_ERROR: "AUTH_ERROR",
    ErrorCode.CONNECT_TIMEOUT: "CONNECT_TIMEOUT",
    ErrorCode.MALFORMED_RESPONSE: "MALFORMED_RESPONSE",
}


# ============================================================================
# Base Error Class
# ============================================================================


class UbusError(Exception):
    """
    Base class for all errors raised by the client.

    Example:
        ```python
        try:
            await client.call("network.interface.lan", "status")
        except UbusError as error:
            print(f"ubus error [{error.code_name}]: {error.message}")
        ```

    Attributes:
        message: Human-readable error message.
        code: Numeric error code.
        code_name: String name of the error code.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        code_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.code_name = code_name or ERROR_CODE_NAMES.get(code, "UNKNOWN_ERROR")

    def __str__(self) -> str:
        return f"{self.code_name}({self.code}): {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code})"

    def to_dict(self) -> dict[str, Any]:
        """Return a dictionary representation of the error."""
        return {
            "name": self.__class__.__name__,
            "message": self.message,
            "code": int(self.code),
            "code_name": self.code_name,
        }


# ============================================================================
# Specific Error Types
# ============================================================================


class TransportError(UbusError):
    """
    The WebSocket failed or closed.

    Raised from connect() when the connection cannot be opened or drops
    before login completes. Calls still outstanding when the connection
    goes away are failed with this error as well.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.TRANSPORT_ERROR)


class NotReadyError(UbusError):
    """A call was submitted before connect() established a session."""

    def __init__(self, message: str = "not ready, perform connect()") -> None:
        super().__init__(message, ErrorCode.NOT_READY)


class SendError(UbusError):
    """
    The transport refused an outbound frame.

    Attributes:
        call_id: Identifier of the call whose frame could not be sent.
    """

    def __init__(self, message: str, call_id: int | None = None) -> None:
        super().__init__(message, ErrorCode.SEND_ERROR)
        self.call_id = call_id


class UbusStatusError(UbusError):
    """
    The daemon reported a failure for a call.

    Raised for JSON-RPC ``error`` objects, and for non-zero ubus status
    codes when the client runs with ``raise_on_status=True``.

    Attributes:
        status: ubus status code or JSON-RPC error code.
        call_id: Identifier of the failed call.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        call_id: int | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.STATUS_ERROR)
        self.status = status
        self.call_id = call_id


class AuthenticationError(UbusError):
    """
    The login call did not yield a session token.

    Attributes:
        status: ubus status code from the login reply, if there was one.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message, ErrorCode.AUTH_ERROR)
        self.status = status


class ConnectTimeoutError(UbusError):
    """
    No login reply arrived within the connect timeout.

    Attributes:
        timeout: The timeout that expired, in seconds.
    """

    def __init__(
        self,
        message: str = "could not connect to websocket",
        timeout: float | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONNECT_TIMEOUT)
        self.timeout = timeout


class MalformedResponseError(UbusError):
    """
    An inbound frame could not be used.

    Attributes:
        call_id: Identifier recovered from the frame, if any.
    """

    def __init__(self, message: str, call_id: int | None = None) -> None:
        super().__init__(message, ErrorCode.MALFORMED_RESPONSE)
        self.call_id = call_id


# ============================================================================
# Error Utilities
# ============================================================================


def is_error_code(error: BaseException, code: ErrorCode) -> bool:
    """
    Check if an error is a UbusError with a specific error code.

    Args:
        error: The error to check.
        code: The error code to match.

    Returns:
        True if the error matches the code.
    """
    return isinstance(error, UbusError) and error.code == code
