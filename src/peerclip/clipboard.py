"""Clipboard provider interface and in-memory backend.

The sync engine never touches a host clipboard directly. It talks to a
ClipboardProvider, which reads and writes text per selection channel and
optionally reports changes. Providers that cannot report changes return
None from connect_changed(); the service then falls back to polling the
provider with the local change watcher.

Backends:
- MemoryClipboard: process-local buffers, used headless and in tests
- X11Clipboard (clipboard_x11): XFixes-driven X11 selections
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable

from peerclip.selection import SelectionChannel

ChangeCallback = Callable[[SelectionChannel], None]


class ClipboardProvider(ABC):
    """Read/write access to the host's selection buffers."""

    @abstractmethod
    async def get_text(self, channel: SelectionChannel) -> str | None:
        """Return the current text of channel, or None if it holds no text."""

    @abstractmethod
    def set_text(self, channel: SelectionChannel, text: str) -> None:
        """Replace the text of channel."""

    def connect_changed(self, callback: ChangeCallback) -> int | None:
        """Subscribe to change notifications.

        Returns:
            A handler id, or None when the backend cannot notify.
        """
        return None

    def disconnect(self, handler_id: int) -> None:
        """Remove a subscription made with connect_changed."""

    def close(self) -> None:
        """Release backend resources."""


class MemoryClipboard(ClipboardProvider):
    """Clipboard held in process memory.

    Args:
        notify: If True, every set_text() reports a change to subscribers,
            the way a host clipboard reports ownership changes. If False,
            connect_changed() returns None and changes must be polled.
    """

    def __init__(self, notify: bool = False) -> None:
        self.notify = notify
        self.buffers: dict[SelectionChannel, str] = {}
        self._callbacks: dict[int, ChangeCallback] = {}
        self._ids = itertools.count(1)

    async def get_text(self, channel: SelectionChannel) -> str | None:
        return self.buffers.get(channel)

    def set_text(self, channel: SelectionChannel, text: str) -> None:
        self.buffers[channel] = text
        for callback in list(self._callbacks.values()):
            callback(channel)

    def connect_changed(self, callback: ChangeCallback) -> int | None:
        if not self.notify:
            return None
        handler_id = next(self._ids)
        self._callbacks[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._callbacks.pop(handler_id, None)

    def close(self) -> None:
        self._callbacks.clear()
