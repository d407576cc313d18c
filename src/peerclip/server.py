#!/usr/bin/env python3
"""Sync server for peerclip.

The server listens on the configured TCP port on all interfaces. For
each inbound connection it reads one request line, authenticates it,
dispatches it to reconciliation or the state store, writes one response
line and closes the connection. Connections are served concurrently on
the event loop, each independently of the others.

An invalid port is logged and leaves the server stopped; the rest of the
service keeps running.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from peerclip.protocol import MAX_LINE_SIZE
from peerclip.server_constants import (
    BIND_ATTEMPTS,
    BIND_INITIAL_WAIT,
    BIND_MAX_WAIT,
    BIND_WAIT_MULTIPLIER,
)
from peerclip.server_handler import handle_connection
from peerclip.settings import LISTEN_PORT, ConfigurationError, validate_port

if TYPE_CHECKING:
    from peerclip.sync_state import SyncContext

logger = logging.getLogger(__name__)


@retry(
    wait=wait_exponential(
        multiplier=BIND_WAIT_MULTIPLIER,
        min=BIND_INITIAL_WAIT,
        max=BIND_MAX_WAIT,
    ),
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(BIND_ATTEMPTS),
    reraise=True,
)
async def bind_listener(ctx: SyncContext, port: int) -> asyncio.Server:
    """Bind the TCP listener, retrying while the address is busy.

    Args:
        ctx: The sync context passed to every connection handler.
        port: TCP port to listen on.

    Returns:
        The started asyncio server.

    Raises:
        OSError: If binding still fails after BIND_ATTEMPTS attempts.
    """
    logger.debug("Binding sync server on port %d", port)
    return await asyncio.start_server(
        lambda r, w: handle_connection(ctx, r, w),
        port=port,
        limit=MAX_LINE_SIZE,
    )


async def start_sync_server(ctx: SyncContext) -> asyncio.Server | None:
    """Start listening on the configured port.

    Args:
        ctx: The sync context.

    Returns:
        The running server, or None if the port is invalid or cannot be bound.
    """
    port = ctx.settings.get_int(LISTEN_PORT)
    try:
        validate_port(port)
    except ConfigurationError as e:
        logger.error("%s", e)
        return None
    try:
        server = await bind_listener(ctx, port)
    except OSError as e:
        logger.error("Failed to start server: %s", e)
        return None
    print_startup_message(port)
    return server


def stop_sync_server(server: asyncio.Server | None) -> None:
    """Stop accepting connections; in-flight connections are abandoned."""
    if server is None:
        return
    server.close()
    logger.debug("Sync server stopped")


def print_startup_message(port: int) -> None:
    """Print server startup message to stderr.

    Args:
        port: The port the server listens on.
    """
    print(f"Listening for clipboard updates on port {port}", file=sys.stderr)
