#!/usr/bin/env python3
"""Last-writer-wins acceptance decision for incoming updates.

Timestamps are wall-clock milliseconds supplied by the sending node; no
logical clocks are involved. Decisions depend only on the incoming
update and the channel's current record, so the outcome does not depend
on the order in which concurrent requests were sent.

Two different texts carrying the exact same timestamp are both accepted
in arrival order, which means the two nodes can end up holding different
values. This matches the established behavior of the protocol and is
left as is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from peerclip.selection import SelectionChannel
    from peerclip.state_store import StateStore

logger = logging.getLogger(__name__)


def should_accept(
    store: StateStore,
    channel: SelectionChannel,
    timestamp: int,
    node: str,
    text: str,
    local_node_id: str,
) -> bool:
    """Decide whether an incoming update replaces the stored value.

    Rules are evaluated in order:

    1. Updates originating from this node are rejected (self-echo).
    2. With no current record, the update is accepted.
    3. Older timestamps are rejected (stale).
    4. Same timestamp and same text is rejected (duplicate).
    5. Anything else is accepted.

    Args:
        store: State store holding the current records.
        channel: Channel the update targets.
        timestamp: Update timestamp in milliseconds.
        node: Originating node identifier.
        text: Update text.
        local_node_id: This node's identifier.

    Returns:
        True if the update should be applied.
    """
    if node == local_node_id:
        logger.debug("Rejecting %s update from self", channel.value)
        return False
    current = store.get(channel)
    if current is None:
        return True
    if timestamp < current.timestamp:
        logger.debug(
            "Rejecting stale %s update (%d < %d)",
            channel.value, timestamp, current.timestamp,
        )
        return False
    if timestamp == current.timestamp and text == current.text:
        logger.debug("Rejecting duplicate %s update at %d", channel.value, timestamp)
        return False
    return True
