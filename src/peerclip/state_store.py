#!/usr/bin/env python3
"""Latest accepted value per selection channel.

The store keeps exactly one record per channel. Recording strictly
replaces the previous record; nothing is merged and no history is kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from peerclip.selection import SelectionChannel


@dataclass(frozen=True)
class StateRecord:
    """Most recently accepted value of a channel.

    Attributes:
        text: Clipboard text.
        timestamp: Millisecond epoch supplied by the producing node.
        node: Identifier of the node that produced the value.
    """

    text: str
    timestamp: int
    node: str


@dataclass
class StateStore:
    """In-memory map of channel to its latest StateRecord."""

    records: dict[SelectionChannel, StateRecord] = field(default_factory=dict)

    def get(self, channel: SelectionChannel) -> StateRecord | None:
        """Return the current record for channel, or None."""
        return self.records.get(channel)

    def record(
        self, channel: SelectionChannel, text: str, timestamp: int, node: str
    ) -> StateRecord:
        """Replace the record for channel and return the new record."""
        record = StateRecord(text=text, timestamp=timestamp, node=node)
        self.records[channel] = record
        return record

    def clear(self) -> None:
        """Drop all records."""
        self.records.clear()
