#!/usr/bin/env python3
"""Clipboard synchronization event handlers.

This module provides the handlers shared by every sync path:
- apply_remote_update: accept or reject a remote value and apply it locally
- handle_clipboard_change: native change notification from the provider
- publish_local_change: record a local value and push it to the peer
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from peerclip.client import push_update
from peerclip.protocol import current_timestamp
from peerclip.reconcile import should_accept
from peerclip.selection import SelectionChannel

if TYPE_CHECKING:
    from peerclip.sync_state import SyncContext

logger = logging.getLogger(__name__)


def apply_remote_update(
    ctx: SyncContext,
    channel: SelectionChannel,
    timestamp: int,
    node: str,
    text: str,
) -> bool:
    """Apply a remote value if reconciliation accepts it.

    Marks the channel in the echo suppressor BEFORE writing the clipboard
    so the change notification caused by the write is not published back.

    Args:
        ctx: The sync context.
        channel: Target channel.
        timestamp: Update timestamp in milliseconds.
        node: Originating node identifier.
        text: Update text.

    Returns:
        True if the update was accepted and applied.
    """
    if not should_accept(ctx.store, channel, timestamp, node, text, ctx.node_id):
        return False
    ctx.echo.mark(channel)
    try:
        ctx.clipboard.set_text(channel, text)
    except Exception:
        # No change notification will follow a failed write
        ctx.echo.consume(channel)
        raise
    ctx.store.record(channel, text, timestamp, node)
    logger.debug(
        "Applied %s update from %s (%d chars, ts=%d)",
        channel.value, node, len(text), timestamp,
    )
    return True


async def handle_clipboard_change(ctx: SyncContext, channel: SelectionChannel) -> None:
    """Handle a native change notification for channel.

    Changes caused by our own remote writes are consumed silently; every
    other change is read and published.

    Args:
        ctx: The sync context.
        channel: Channel the provider reported as changed.
    """
    if channel is SelectionChannel.PRIMARY and not ctx.sync_primary:
        return
    if ctx.echo.consume(channel):
        logger.debug("Skipping echo of remote %s write", channel.value)
        return
    text = await ctx.clipboard.get_text(channel)
    if text is None:
        logger.debug("Clipboard read returned no text, skipping")
        return
    publish_local_change(ctx, channel, text)


def publish_local_change(
    ctx: SyncContext, channel: SelectionChannel, text: str
) -> asyncio.Task[object]:
    """Record a local value and push it to the peer.

    The push runs in the background; a failed push is logged and lost.

    Args:
        ctx: The sync context.
        channel: Channel that changed locally.
        text: New local text.

    Returns:
        The background push task.
    """
    record = ctx.store.record(channel, text, current_timestamp(), ctx.node_id)
    logger.debug("Publishing local %s change (%d chars)", channel.value, len(text))
    return push_update(ctx, channel, record)
