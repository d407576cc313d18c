#!/usr/bin/env python3
"""Periodic pull of the peer's CLIPBOARD state.

Pushes can be lost (no retry, peer briefly down). When a poll interval is
configured, the node also asks the peer for its current CLIPBOARD value
at that interval and runs the reply through the same reconciliation path
as a pushed update. PRIMARY is never pulled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from peerclip.client import build_pull, send_message
from peerclip.protocol import STATUS_OK, TYPE_UPDATE
from peerclip.selection import SelectionChannel, resolve_channel
from peerclip.settings import POLL_INTERVAL
from peerclip.sync_handlers import apply_remote_update

if TYPE_CHECKING:
    from peerclip.scheduler import TimerHandle
    from peerclip.sync_state import SyncContext

logger = logging.getLogger(__name__)


async def pull_remote(ctx: SyncContext) -> bool:
    """Pull the peer's CLIPBOARD value and apply it if accepted.

    Args:
        ctx: The sync context.

    Returns:
        True if the pulled value was applied locally.
    """
    response = await send_message(
        ctx, build_pull(ctx, SelectionChannel.CLIPBOARD), expect_response=True
    )
    if response is None:
        return False
    if response.get("status") != STATUS_OK or response.get("type") != TYPE_UPDATE:
        logger.debug("Pull returned status %r", response.get("status"))
        return False

    channel = resolve_channel(response.get("selection"), ctx.sync_primary)
    if channel is None:
        return False
    timestamp = response.get("timestamp")
    node = response.get("node")
    text = response.get("text")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        logger.warning("Ignoring pull reply with invalid timestamp %r", timestamp)
        return False
    if not isinstance(node, str) or not isinstance(text, str):
        logger.warning("Ignoring malformed pull reply")
        return False
    return apply_remote_update(ctx, channel, timestamp, node, text)


class PollScheduler:
    """Recurring pull timer driven by the poll-interval setting."""

    def __init__(self, ctx: SyncContext) -> None:
        self.ctx = ctx
        self._handle: TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def update(self) -> None:
        """(Re)start the timer from the current poll-interval; 0 disables."""
        self.stop()
        interval = self.ctx.settings.get_int(POLL_INTERVAL)
        if interval <= 0:
            logger.debug("Polling disabled")
            return
        logger.debug("Polling peer every %d seconds", interval)
        self._handle = self.ctx.scheduler.call_every(
            interval, lambda: pull_remote(self.ctx), name="poll"
        )

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
