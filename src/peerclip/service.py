#!/usr/bin/env python3
"""Sync service lifecycle.

SyncService wires the components together on startup and takes them
apart on shutdown:
- ensures the node identity and builds the SyncContext
- subscribes to native clipboard changes, or starts the local watcher
  when the provider cannot notify
- starts the sync server and the poll timer
- reacts to settings changes (listen-port restarts the server,
  poll-interval restarts the poll timer)

Shutdown stops the listener, cancels every timer and disconnects the
change notification. Requests already in flight are abandoned.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from typing import TYPE_CHECKING

from peerclip.node_identity import ensure_node_id
from peerclip.poller import PollScheduler
from peerclip.server import start_sync_server, stop_sync_server
from peerclip.settings import LISTEN_PORT, POLL_INTERVAL, SYNC_PRIMARY, ConfigurationError
from peerclip.sync_handlers import handle_clipboard_change
from peerclip.sync_state import SyncContext
from peerclip.watcher import LocalChangeWatcher

if TYPE_CHECKING:
    from peerclip.clipboard import ClipboardProvider
    from peerclip.selection import SelectionChannel
    from peerclip.settings import SettingsStore

logger = logging.getLogger(__name__)


class SyncService:
    """One running synchronization node.

    Args:
        settings: Configuration store.
        clipboard: Host clipboard backend.
    """

    def __init__(self, settings: SettingsStore, clipboard: ClipboardProvider) -> None:
        self.settings = settings
        self.clipboard = clipboard
        self.ctx: SyncContext | None = None
        self.server: asyncio.Server | None = None
        self.poller: PollScheduler | None = None
        self.watcher: LocalChangeWatcher | None = None
        self._clipboard_handler: int | None = None
        self._settings_handlers: list[int] = []

    async def start(self) -> SyncContext:
        """Start all components and return the live context."""
        ctx = SyncContext(
            settings=self.settings,
            clipboard=self.clipboard,
            node_id=ensure_node_id(self.settings),
        )
        self.ctx = ctx
        logger.debug("Node id is %s", ctx.node_id)

        self._clipboard_handler = self.clipboard.connect_changed(self._on_clipboard_changed)
        if self._clipboard_handler is None:
            logger.info("Clipboard change signal unavailable; falling back to local polling")
            self.watcher = LocalChangeWatcher(ctx)
            self.watcher.start()

        await self.restart_server()
        self.poller = PollScheduler(ctx)
        self.poller.update()

        self._settings_handlers = [
            self.settings.connect(LISTEN_PORT, self._on_listen_port_changed),
            self.settings.connect(POLL_INTERVAL, self._on_poll_interval_changed),
            self.settings.connect(SYNC_PRIMARY, self._on_sync_primary_changed),
        ]
        return ctx

    async def stop(self) -> None:
        """Tear down all components."""
        if self.poller is not None:
            self.poller.stop()
            self.poller = None
        stop_sync_server(self.server)
        self.server = None
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        for handler_id in self._settings_handlers:
            self.settings.disconnect(handler_id)
        self._settings_handlers = []
        if self._clipboard_handler is not None:
            self.clipboard.disconnect(self._clipboard_handler)
            self._clipboard_handler = None
        if self.ctx is not None:
            self.ctx.reset()
            self.ctx = None

    async def restart_server(self) -> None:
        """Stop the current listener and bind a new one on the configured port."""
        if self.ctx is None:
            return
        stop_sync_server(self.server)
        self.server = None
        self.server = await start_sync_server(self.ctx)

    def _on_clipboard_changed(self, channel: SelectionChannel) -> None:
        if self.ctx is None:
            return
        self.ctx.scheduler.spawn(
            handle_clipboard_change(self.ctx, channel), name="clipboard change"
        )

    def _on_listen_port_changed(self, key: str) -> None:
        if self.ctx is None:
            return
        logger.debug("%s changed, restarting server", key)
        self.ctx.scheduler.spawn(self.restart_server(), name="server restart")

    def _on_poll_interval_changed(self, key: str) -> None:
        if self.poller is not None:
            self.poller.update()

    def _on_sync_primary_changed(self, key: str) -> None:
        # Read on every use; nothing to restart.
        logger.debug("%s is now %s", key, self.settings.get_bool(key))


def reload_settings(settings: SettingsStore) -> None:
    """Re-read the settings file, keeping current values on error."""
    try:
        changed = settings.reload()
    except ConfigurationError as e:
        logger.error("Settings reload failed: %s", e)
        return
    logger.info("Settings reloaded; changed: %s", ", ".join(changed) or "none")


async def run_service(
    settings: SettingsStore,
    clipboard_factory: Callable[[], ClipboardProvider],
) -> None:
    """Run a sync node until SIGINT or SIGTERM.

    The clipboard backend is created inside the running event loop since
    backends may register file descriptors with it. SIGHUP reloads the
    settings file.

    Args:
        settings: Configuration store.
        clipboard_factory: Callable creating the clipboard backend.
    """
    clipboard = clipboard_factory()
    service = SyncService(settings, clipboard)

    shutdown_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_requested.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_requested.set)
    loop.add_signal_handler(signal.SIGHUP, reload_settings, settings)

    try:
        await service.start()
        await shutdown_requested.wait()
    finally:
        await service.stop()
        clipboard.close()
        for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
            loop.remove_signal_handler(sig)
