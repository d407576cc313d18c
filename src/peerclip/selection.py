#!/usr/bin/env python3
"""Selection channel names and resolution.

Two independently synchronized buffers exist: CLIPBOARD (explicit copy)
and PRIMARY (X11 middle-click selection). PRIMARY sync is gated by the
sync-primary setting; when disabled it is treated as if it did not exist
for both the wire protocol and reconciliation.
"""

from __future__ import annotations

from enum import Enum


class SelectionChannel(Enum):
    """Selection channel; the value is the name used on the wire."""

    CLIPBOARD = "CLIPBOARD"
    PRIMARY = "PRIMARY"


def resolve_channel(name: object, sync_primary: bool) -> SelectionChannel | None:
    """Map a wire selection name to a channel.

    Args:
        name: Selection name from a payload (may be any JSON value).
        sync_primary: Whether PRIMARY sync is enabled locally.

    Returns:
        The matching channel, or None for unknown names and for PRIMARY
        while PRIMARY sync is disabled.
    """
    for channel in SelectionChannel:
        if channel.value == name:
            if channel is SelectionChannel.PRIMARY and not sync_primary:
                return None
            return channel
    return None


def enabled_channels(sync_primary: bool) -> list[SelectionChannel]:
    """Return the channels that are currently synchronized."""
    channels = [SelectionChannel.CLIPBOARD]
    if sync_primary:
        channels.append(SelectionChannel.PRIMARY)
    return channels
