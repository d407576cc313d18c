#!/usr/bin/env python3
"""
JSON line framing for sync messages.

Every request and every response is a single JSON object encoded as
UTF-8 and terminated by a newline. JSON escapes control characters inside
strings, so clipboard text containing newlines never breaks the framing.

Request:  {"type": "update"|"pull", "node": ..., "selection": ...,
           "timestamp": <ms>, "text": ..., "secret": ...}
Response: {"status": "ok"|"ignored"|"empty"|"unauthorized"|"error", ...}

Lines are limited to 10 MB to prevent memory exhaustion.
"""
from __future__ import annotations

import asyncio
import hmac
import json
import time
from typing import Any

# Maximum size of one protocol line in bytes (10 MB).
# Passed as the StreamReader limit on both ends of the connection.
MAX_LINE_SIZE: int = 10485760

TYPE_UPDATE = "update"
TYPE_PULL = "pull"

STATUS_OK = "ok"
STATUS_IGNORED = "ignored"
STATUS_EMPTY = "empty"
STATUS_UNAUTHORIZED = "unauthorized"
STATUS_ERROR = "error"


class ProtocolError(Exception):
    """
    Exception raised for framing-level errors.

    Raised when a line is empty, is not valid UTF-8 JSON, is not a JSON
    object, or exceeds MAX_LINE_SIZE.
    """

    pass


class AuthError(Exception):
    """Exception raised when a request carries the wrong shared secret."""

    pass


class ValidationError(Exception):
    """
    Exception raised for well-formed requests that cannot be served.

    Covers unknown selections, a disabled PRIMARY channel and unsupported
    payload types. The message is sent back to the requester verbatim.
    """

    pass


def current_timestamp() -> int:
    """Return the current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def encode_message(payload: dict[str, Any]) -> bytes:
    """
    Encode a message as one newline-terminated JSON line.

    Args:
        payload: JSON-serializable message object.

    Returns:
        UTF-8 bytes ending in b"\\n".
    """
    return json.dumps(payload, ensure_ascii=False).encode("utf-8") + b"\n"


def decode_message(line: bytes) -> dict[str, Any]:
    """
    Decode one protocol line into a message object.

    Args:
        line: Raw line, with or without its trailing newline.

    Returns:
        The decoded JSON object.

    Raises:
        ProtocolError: On empty input, invalid UTF-8/JSON, or a non-object.
    """
    if not line.strip():
        raise ProtocolError("Empty payload")
    try:
        payload = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid JSON payload: {e}") from e
    if not isinstance(payload, dict):
        raise ProtocolError("Invalid payload")
    return payload


async def read_message(reader: asyncio.StreamReader) -> dict[str, Any]:
    """
    Read and decode one message line from an async stream.

    Args:
        reader: asyncio StreamReader to read from.

    Returns:
        The decoded JSON object.

    Raises:
        ProtocolError: On EOF before any data, oversized or invalid line.
    """
    try:
        line = await reader.readline()
    except ValueError as e:
        # StreamReader signals a line over its limit with ValueError
        raise ProtocolError(f"Line exceeds limit {MAX_LINE_SIZE}") from e
    return decode_message(line)


def check_secret(payload: dict[str, Any], expected: str) -> None:
    """
    Verify the shared secret carried by a request.

    Uses a constant-time comparison so response timing does not leak how
    much of the secret matched.

    Args:
        payload: Decoded request.
        expected: Configured shared secret.

    Raises:
        AuthError: If the secret is missing, not a string, or different.
    """
    provided = payload.get("secret")
    if not isinstance(provided, str):
        raise AuthError("Missing secret")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("Secret mismatch")
