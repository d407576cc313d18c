#!/usr/bin/env python3
"""Inbound connection handler.

Each connection carries exactly one request line and receives exactly
one response line, after which it is closed. Every failure while reading
or serving the request is folded into an error response; failures while
writing the response or closing the connection are logged and dropped,
so one bad connection never affects another.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from peerclip.protocol import (
    STATUS_EMPTY,
    STATUS_ERROR,
    STATUS_IGNORED,
    STATUS_OK,
    STATUS_UNAUTHORIZED,
    TYPE_PULL,
    TYPE_UPDATE,
    AuthError,
    ProtocolError,
    ValidationError,
    check_secret,
    current_timestamp,
    encode_message,
    read_message,
)
from peerclip.selection import SelectionChannel, resolve_channel
from peerclip.sync_handlers import apply_remote_update

if TYPE_CHECKING:
    import asyncio

    from peerclip.sync_state import SyncContext

logger = logging.getLogger(__name__)

# Node name assumed for updates that do not identify their origin.
ANONYMOUS_NODE = "remote"


def error_response(message: str) -> dict[str, Any]:
    """Build an error response carrying message."""
    return {"status": STATUS_ERROR, "message": message}


async def handle_connection(
    ctx: SyncContext,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
) -> None:
    """Serve one request on an accepted connection.

    Args:
        ctx: The sync context.
        reader: The asyncio StreamReader for the connection.
        writer: The asyncio StreamWriter for the connection.
    """
    peer = writer.get_extra_info("peername")
    try:
        payload = await read_message(reader)
        response = handle_payload(ctx, payload)
    except ProtocolError as e:
        logger.warning("Protocol error from %s: %s", peer, e)
        response = error_response(str(e))
    except Exception as e:
        logger.error("Failed processing request from %s: %s", peer, e)
        response = error_response(str(e))

    try:
        writer.write(encode_message(response))
        await writer.drain()
    except OSError as e:
        logger.warning("Error sending reply to %s: %s", peer, e)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing connection from %s: %s", peer, e)


def handle_payload(ctx: SyncContext, payload: dict[str, Any]) -> dict[str, Any]:
    """Authenticate and dispatch a decoded request.

    Args:
        ctx: The sync context.
        payload: Decoded request object.

    Returns:
        The response object to send back.
    """
    try:
        check_secret(payload, ctx.shared_secret)
    except AuthError as e:
        logger.warning("Rejecting request from node %r: %s", payload.get("node"), e)
        return {"status": STATUS_UNAUTHORIZED}

    payload_type = payload.get("type") or TYPE_UPDATE
    try:
        if payload_type == TYPE_UPDATE:
            return _handle_update(ctx, payload)
        if payload_type == TYPE_PULL:
            return _handle_pull(ctx, payload)
        raise ValidationError(f"Unsupported payload type: {payload_type}")
    except ValidationError as e:
        logger.debug("Invalid request: %s", e)
        return error_response(str(e))


def _handle_update(ctx: SyncContext, payload: dict[str, Any]) -> dict[str, Any]:
    """Reconcile and apply a pushed update."""
    channel = resolve_channel(payload.get("selection"), ctx.sync_primary)
    if channel is None:
        raise ValidationError("Unknown selection")

    timestamp = coerce_timestamp(payload.get("timestamp"))
    node = payload.get("node")
    if not isinstance(node, str) or not node:
        node = ANONYMOUS_NODE
    text = payload.get("text")
    if not isinstance(text, str):
        text = ""

    if not apply_remote_update(ctx, channel, timestamp, node, text):
        return {"status": STATUS_IGNORED}
    return {"status": STATUS_OK}


def _handle_pull(ctx: SyncContext, payload: dict[str, Any]) -> dict[str, Any]:
    """Report the stored record of the requested channel."""
    name = payload.get("selection") or SelectionChannel.CLIPBOARD.value
    channel = resolve_channel(name, ctx.sync_primary)
    record = ctx.store.get(channel) if channel is not None else None
    if record is None:
        return {"status": STATUS_EMPTY}
    return {
        "status": STATUS_OK,
        "type": TYPE_UPDATE,
        "node": ctx.node_id,
        "selection": channel.value,
        "timestamp": record.timestamp,
        "text": record.text,
    }


def coerce_timestamp(value: object) -> int:
    """Return value as a millisecond timestamp, defaulting to now.

    Numeric strings are parsed. Missing, zero, non-numeric and
    non-finite values all default to the current time.
    """
    if isinstance(value, str):
        value = _parse_number(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return current_timestamp()
    if isinstance(value, float) and not math.isfinite(value):
        return current_timestamp()
    if not value:
        return current_timestamp()
    return int(value)


def _parse_number(text: str) -> int | float | None:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None
