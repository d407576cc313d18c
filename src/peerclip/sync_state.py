#!/usr/bin/env python3
"""Synchronization context.

This module provides the SyncContext dataclass that groups all mutable
state of a running sync service. It is constructed on startup, passed to
every handler, and torn down on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from peerclip.echo import EchoSuppressor
from peerclip.scheduler import Scheduler
from peerclip.settings import SHARED_SECRET, SYNC_PRIMARY
from peerclip.state_store import StateStore

if TYPE_CHECKING:
    from peerclip.clipboard import ClipboardProvider
    from peerclip.selection import SelectionChannel
    from peerclip.settings import SettingsStore


@dataclass
class SyncContext:
    """State for clipboard synchronization.

    Attributes:
        settings: Configuration store.
        clipboard: Host clipboard backend.
        node_id: This node's persistent identifier.
        store: Latest accepted value per channel.
        echo: Channels expecting an echo from a remote write.
        scheduler: Owner of timers and background tasks.
        observed_text: Last text seen per channel by the local watcher.
    """

    settings: SettingsStore
    clipboard: ClipboardProvider
    node_id: str
    store: StateStore = field(default_factory=StateStore)
    echo: EchoSuppressor = field(default_factory=EchoSuppressor)
    scheduler: Scheduler = field(default_factory=Scheduler)
    observed_text: dict[SelectionChannel, str] = field(default_factory=dict)

    @property
    def sync_primary(self) -> bool:
        return self.settings.get_bool(SYNC_PRIMARY)

    @property
    def shared_secret(self) -> str:
        return self.settings.get_str(SHARED_SECRET)

    def reset(self) -> None:
        """Drop per-session state on shutdown."""
        self.scheduler.cancel_all()
        self.echo.clear()
        self.store.clear()
        self.observed_text.clear()
