#!/usr/bin/env python3
"""Outbound requests to the peer node.

Each request opens a fresh TCP connection to the configured peer
endpoint, writes one JSON line, optionally reads one JSON line back, and
closes. Nothing is retried: a failed push is lost and a failed pull
yields no update. Failures are logged and reported to the caller as a
None response.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from peerclip.protocol import (
    MAX_LINE_SIZE,
    TYPE_PULL,
    TYPE_UPDATE,
    ProtocolError,
    current_timestamp,
    encode_message,
    read_message,
)
from peerclip.settings import LISTEN_PORT, PEER_ENDPOINT

if TYPE_CHECKING:
    from peerclip.selection import SelectionChannel
    from peerclip.state_store import StateRecord
    from peerclip.sync_state import SyncContext

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "tcp"


class NetworkError(ConnectionError):
    """Exception raised when talking to the peer fails."""

    pass


def resolve_endpoint(endpoint: str, fallback_port: int) -> tuple[str, int] | None:
    """Parse a peer endpoint into host and port.

    Accepts URIs such as "tcp://host:7100" and bare "host:7100". When the
    endpoint carries no port, fallback_port is used.

    Args:
        endpoint: Configured peer endpoint.
        fallback_port: Port used when the endpoint omits one.

    Returns:
        Tuple of (host, port), or None if the endpoint is unusable.
    """
    endpoint = endpoint.strip()
    if not endpoint:
        return None
    if "://" not in endpoint:
        endpoint = f"{DEFAULT_SCHEME}://{endpoint}"
    try:
        parts = urlsplit(endpoint)
        host = parts.hostname
        port = parts.port
    except ValueError:
        logger.warning("Invalid peer endpoint: %s", endpoint)
        return None
    if port is None:
        port = fallback_port
    if not host or not 1 <= port <= 65535:
        logger.warning("Incomplete peer endpoint: %s", endpoint)
        return None
    return host, port


async def open_peer_connection(
    host: str, port: int
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Connect to the peer's sync server.

    Raises:
        NetworkError: If the host cannot be resolved or the connection fails.
    """
    try:
        return await asyncio.open_connection(host, port, limit=MAX_LINE_SIZE)
    except OSError as e:
        raise NetworkError(f"Failed to connect to {host}:{port}: {e}") from e


async def exchange(
    host: str, port: int, payload: dict[str, Any], expect_response: bool
) -> dict[str, Any] | None:
    """Send one message and optionally read one reply.

    Raises:
        NetworkError: On connection, I/O or reply decoding failure.
    """
    reader, writer = await open_peer_connection(host, port)
    try:
        writer.write(encode_message(payload))
        await writer.drain()
        if not expect_response:
            return None
        try:
            return await read_message(reader)
        except ProtocolError as e:
            raise NetworkError(f"Invalid reply from {host}:{port}: {e}") from e
    except NetworkError:
        raise
    except OSError as e:
        raise NetworkError(f"I/O error talking to {host}:{port}: {e}") from e
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing peer connection: %s", e)


async def send_message(
    ctx: SyncContext, payload: dict[str, Any], expect_response: bool = False
) -> dict[str, Any] | None:
    """Send a message to the configured peer.

    Args:
        ctx: The sync context.
        payload: Message to send.
        expect_response: Whether to wait for and decode a reply line.

    Returns:
        The decoded reply, or None when no reply was requested, the peer
        is not configured, or the exchange failed.
    """
    endpoint = ctx.settings.get_str(PEER_ENDPOINT)
    if not endpoint.strip():
        logger.debug("No peer endpoint configured, not sending")
        return None
    resolved = resolve_endpoint(endpoint, ctx.settings.get_int(LISTEN_PORT))
    if resolved is None:
        return None
    host, port = resolved
    try:
        return await exchange(host, port, payload, expect_response)
    except NetworkError as e:
        logger.warning("Connection to peer failed: %s", e)
        return None


def build_update(
    ctx: SyncContext, channel: SelectionChannel, record: StateRecord
) -> dict[str, Any]:
    """Build an update message for a locally produced record."""
    return {
        "type": TYPE_UPDATE,
        "node": ctx.node_id,
        "selection": channel.value,
        "timestamp": record.timestamp,
        "text": record.text,
        "secret": ctx.shared_secret,
    }


def build_pull(ctx: SyncContext, channel: SelectionChannel) -> dict[str, Any]:
    """Build a pull request for channel."""
    return {
        "type": TYPE_PULL,
        "node": ctx.node_id,
        "selection": channel.value,
        "timestamp": current_timestamp(),
        "secret": ctx.shared_secret,
    }


def push_update(
    ctx: SyncContext, channel: SelectionChannel, record: StateRecord
) -> asyncio.Task[Any]:
    """Push record to the peer in the background.

    Fire and forget: the returned task never raises, a failed push is
    logged by send_message and lost.
    """
    return ctx.scheduler.spawn(
        send_message(ctx, build_update(ctx, channel, record)), name="push"
    )
