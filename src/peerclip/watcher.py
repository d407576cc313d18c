#!/usr/bin/env python3
"""Polling fallback for clipboard change detection.

Used only when the clipboard provider cannot report changes itself.
Every LOCAL_WATCH_INTERVAL seconds each enabled channel is read and
compared with the text last observed on it; a difference is published
as a local change. A channel flagged by the echo suppressor has its flag
cleared and its text recorded as observed without being published.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from peerclip.selection import enabled_channels
from peerclip.sync_handlers import publish_local_change

if TYPE_CHECKING:
    from peerclip.scheduler import TimerHandle
    from peerclip.selection import SelectionChannel
    from peerclip.sync_state import SyncContext

logger = logging.getLogger(__name__)

# Seconds between local clipboard reads.
LOCAL_WATCH_INTERVAL: float = 0.5


class LocalChangeWatcher:
    """Detect local clipboard edits by periodic comparison."""

    def __init__(self, ctx: SyncContext, interval: float = LOCAL_WATCH_INTERVAL) -> None:
        self.ctx = ctx
        self.interval = interval
        self._handle: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            return
        self._handle = self.ctx.scheduler.call_every(
            self.interval, self.check, name="local-watch"
        )

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def check(self) -> list[SelectionChannel]:
        """Compare every enabled channel with its last observed text.

        Returns:
            The channels that were published as local changes.
        """
        ctx = self.ctx
        published = []
        for channel in enabled_channels(ctx.sync_primary):
            text = await ctx.clipboard.get_text(channel)
            if text is None:
                continue
            if ctx.echo.consume(channel):
                ctx.observed_text[channel] = text
                continue
            if ctx.observed_text.get(channel) == text:
                continue
            ctx.observed_text[channel] = text
            publish_local_change(ctx, channel, text)
            published.append(channel)
        return published
