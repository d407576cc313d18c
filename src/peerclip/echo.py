#!/usr/bin/env python3
"""
Echo suppression for remotely applied clipboard writes.

Writing a remote value into the local clipboard makes the host report a
clipboard change, exactly as if the user had copied something. Without
tracking, that change would be published back to the peer, which would
reject it as stale or duplicate at best and start a ping-pong at worst.

The channel is marked BEFORE the local write. The change-notification
path consumes the mark and treats the observed change as externally
caused.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from peerclip.selection import SelectionChannel


@dataclass
class EchoSuppressor:
    """
    Track channels expecting an echo from a remote write.

    Attributes:
        pending: Channels whose next observed change must not be published.
    """

    pending: set[SelectionChannel] = field(default_factory=set)

    def mark(self, channel: SelectionChannel) -> None:
        """
        Flag channel as expecting an echo.

        CRITICAL: Must be called BEFORE writing to the clipboard so that
        the resulting change notification is recognized.

        Args:
            channel: Channel about to be written from remote data.
        """
        self.pending.add(channel)

    def consume(self, channel: SelectionChannel) -> bool:
        """
        Remove the flag for channel and report whether it was set.

        Args:
            channel: Channel whose change was just observed.

        Returns:
            True if the change was caused by a remote write.
        """
        if channel in self.pending:
            self.pending.discard(channel)
            return True
        return False

    def is_marked(self, channel: SelectionChannel) -> bool:
        """Return True if channel currently expects an echo."""
        return channel in self.pending

    def clear(self) -> None:
        """Drop all flags."""
        self.pending.clear()
