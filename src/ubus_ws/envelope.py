"""
JSON-RPC envelope used on the ubus WebSocket.

Requests look like::

    {"jsonrpc": "2.0", "id": 7, "method": "call",
     "params": [<session>, <object>, <method>, <args>]}

and replies like::

    {"jsonrpc": "2.0", "id": 7, "result": [<status>, <payload>]}
"""

from __future__ import annotations

import json
import re
from typing import Any

from .errors import MalformedResponseError

__all__ = [
    "JSONRPC_VERSION",
    "LOGIN_SESSION_ID",
    "encode_request",
    "login_request",
    "decode_frame",
    "recover_call_id",
    "response_call_id",
]

JSONRPC_VERSION = "2.0"

# Placeholder session used for the login call itself
LOGIN_SESSION_ID = "0" * 32

_ID_PATTERN = re.compile(r'"id"\D*(\d+)')


def encode_request(
    method: str,
    params: list[Any],
    call_id: int | None = None,
) -> str:
    """
    Serialize a request envelope.

    Args:
        method: JSON-RPC method, normally ``"call"``
        params: Positional parameters, session token first
        call_id: Call identifier; omitted from the frame when None

    Returns:
        The frame text
    """
    envelope: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
    if call_id is not None:
        envelope["id"] = call_id
    envelope["method"] = method
    envelope["params"] = params
    return json.dumps(envelope)


def login_request(username: str, password: str) -> str:
    """Serialize the ``session login`` call that opens a session."""
    return encode_request(
        "call",
        [
            LOGIN_SESSION_ID,
            "session",
            "login",
            {"username": username, "password": password},
        ],
    )


def decode_frame(data: str | bytes) -> dict[str, Any]:
    """
    Parse an inbound frame.

    Args:
        data: Frame text (binary frames are decoded as UTF-8)

    Returns:
        The decoded envelope

    Raises:
        MalformedResponseError: If the frame is not a JSON object
    """
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        envelope = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedResponseError("response is not valid JSON") from e

    if not isinstance(envelope, dict):
        raise MalformedResponseError("response is not a JSON object")
    return envelope


def recover_call_id(data: str | bytes) -> int | None:
    """
    Pull a call identifier out of a frame that failed to parse.

    Takes the first run of digits following the literal ``"id"``, so both
    ``"id": 3`` and ``"id":"3"`` yield 3.

    Returns:
        The identifier, or None if the frame has no ``"id"`` followed by digits
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    match = _ID_PATTERN.search(data)
    if match is None:
        return None
    return int(match.group(1))


def response_call_id(response: dict[str, Any]) -> int | None:
    """
    Read the call identifier of a decoded reply.

    Whole-number floats such as ``3.0`` are accepted as 3.

    Returns:
        The identifier, or None if the reply carries no usable ``id``
    """
    value = response.get("id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
