"""X11 clipboard backend via the XFixes extension.

X11Clipboard implements ClipboardProvider on top of python-xlib. An
unmapped 1x1 window owns the selections we write and answers
SelectionRequest events for them; text owned by other clients is read by
converting to UTF8_STRING. XFixes owner-change events become change
notifications. The display socket is watched with loop.add_reader, so
all event handling happens on the asyncio loop.

Transfers using the INCR protocol are not supported; such reads return
no text.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
from typing import TYPE_CHECKING

from Xlib import X, Xatom

from peerclip.clipboard import ChangeCallback, ClipboardProvider
from peerclip.selection import SelectionChannel

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.protocol.event import SelectionRequest
    from Xlib.protocol.rq import Event
    from Xlib.xobject.drawable import Window

logger = logging.getLogger(__name__)

# Timeout in seconds for clipboard read operations to prevent hangs
# when the clipboard owner is unresponsive
CLIPBOARD_TIMEOUT: float = 2.0

# Window property that receives converted selection data.
TRANSFER_PROPERTY = "PEERCLIP_SEL"


class ClipboardError(RuntimeError):
    """Exception raised when the X11 clipboard cannot be used."""

    pass


def open_display() -> Display:
    """Validate X11 connectivity and return a Display object.

    Raises:
        ClipboardError: If DISPLAY is unset or the connection fails.
    """
    display_name = os.environ.get("DISPLAY")
    if not display_name:
        raise ClipboardError("DISPLAY environment variable is not set")
    try:
        from Xlib.display import Display as XDisplay
        return XDisplay(display_name)
    except Exception as e:
        raise ClipboardError(f"Failed to connect to X11 display: {e}") from e


def create_hidden_window(display: Display) -> Window:
    """Create a 1x1 unmapped window for selection ownership."""
    screen = display.screen()
    return screen.root.create_window(
        0, 0, 1, 1, 0, screen.root_depth, event_mask=X.PropertyChangeMask,
    )


def register_xfixes_events(display: Display, window: Window, atoms: list[int]) -> None:
    """Register for XFixes selection owner notifications on atoms.

    Args:
        display: The X11 display connection.
        window: The window to receive selection events.
        atoms: Selection atoms to watch.
    """
    from Xlib.ext import xfixes

    xfixes.query_version(display)
    mask = xfixes.XFixesSetSelectionOwnerNotifyMask
    for atom in atoms:
        xfixes.select_selection_input(display, window.id, atom, mask)
    display.flush()


def wait_for_event_type(
    display: Display, target_event_type: int, deferred_events: list[Event]
) -> Event:
    """Block until an event of target_event_type arrives.

    Other events are appended to deferred_events for later processing.
    """
    while True:
        event = display.next_event()
        if event.type == target_event_type:
            return event
        deferred_events.append(event)


class X11Clipboard(ClipboardProvider):
    """Clipboard backed by X11 selections.

    Must be constructed inside a running event loop.

    Args:
        display: X11 display connection; opened from DISPLAY if None.
        notify: If False, change notifications are not offered and the
            service polls instead.
    """

    def __init__(self, display: Display | None = None, notify: bool = True) -> None:
        self.display = display if display is not None else open_display()
        self.window = create_hidden_window(self.display)
        self.notify = notify
        self.atoms: dict[SelectionChannel, int] = {
            SelectionChannel.CLIPBOARD: self.display.intern_atom("CLIPBOARD"),
            SelectionChannel.PRIMARY: Xatom.PRIMARY,
        }
        self.owned: dict[int, bytes] = {}
        self.deferred_events: list[Event] = []
        self._callbacks: dict[int, ChangeCallback] = {}
        self._ids = itertools.count(1)
        self._read_lock = asyncio.Lock()
        self._reading = False

        register_xfixes_events(self.display, self.window, list(self.atoms.values()))
        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(self.display.fileno(), self.process_events)

    def _channel_for(self, atom: int) -> SelectionChannel | None:
        for channel, channel_atom in self.atoms.items():
            if channel_atom == atom:
                return channel
        return None

    def _owns(self, atom: int) -> bool:
        owner = self.display.get_selection_owner(atom)
        return owner != X.NONE and owner.id == self.window.id

    async def get_text(self, channel: SelectionChannel) -> str | None:
        atom = self.atoms[channel]
        async with self._read_lock:
            if self._owns(atom) and atom in self.owned:
                return self.owned[atom].decode("utf-8", errors="replace")
            content = await self._read_selection(atom)
        if content is None:
            return None
        return content.decode("utf-8", errors="replace")

    async def _read_selection(self, atom: int) -> bytes | None:
        """Convert the selection to UTF8_STRING and read the result."""
        owner = self.display.get_selection_owner(atom)
        if owner == X.NONE:
            logger.debug("No selection owner for atom %s", atom)
            return None

        utf8_atom = self.display.intern_atom("UTF8_STRING")
        prop_atom = self.display.intern_atom(TRANSFER_PROPERTY)
        self._reading = True
        try:
            self.window.convert_selection(atom, utf8_atom, prop_atom, X.CurrentTime)
            self.display.flush()
            event = await asyncio.wait_for(
                asyncio.to_thread(
                    wait_for_event_type, self.display, X.SelectionNotify, self.deferred_events
                ),
                timeout=CLIPBOARD_TIMEOUT,
            )
        except asyncio.TimeoutError:
            logger.debug("Clipboard read timed out after %s seconds", CLIPBOARD_TIMEOUT)
            return None
        finally:
            self._reading = False
            if self.deferred_events:
                self._loop.call_soon(self.process_events)

        if event.property == X.NONE:
            logger.debug("Selection owner refused UTF8_STRING conversion")
            return None
        return self._read_property(prop_atom)

    def _read_property(self, prop_atom: int) -> bytes | None:
        """Read and delete the transfer property from our window."""
        prop = self.window.get_full_property(prop_atom, X.AnyPropertyType)
        self.window.delete_property(prop_atom)
        self.display.flush()
        if prop is None:
            logger.debug("Selection property was empty")
            return None
        if prop.property_type == self.display.intern_atom("INCR"):
            logger.warning("INCR selection transfers are not supported, skipping")
            return None
        data = prop.value
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data)

    def set_text(self, channel: SelectionChannel, text: str) -> None:
        atom = self.atoms[channel]
        self.owned[atom] = text.encode("utf-8")
        self.window.set_selection_owner(atom, X.CurrentTime)
        self.display.flush()
        if not self._owns(atom):
            logger.error("Failed to acquire %s selection ownership", channel.value)
        # The ownership round-trip may have queued events without waking the reader
        self._loop.call_soon(self.process_events)

    def process_events(self) -> None:
        """Handle every pending X11 event without blocking."""
        if self._reading:
            return
        events = list(self.deferred_events)
        self.deferred_events.clear()
        while self.display.pending_events() > 0:
            events.append(self.display.next_event())
        for event in events:
            if event.type == X.SelectionRequest:
                self.serve_request(event)
            elif type(event).__name__ == "SetSelectionOwnerNotify":
                self._on_owner_change(event)

    def _on_owner_change(self, event: Event) -> None:
        if event.owner == X.NONE or event.owner.id != self.window.id:
            self.owned.pop(event.selection, None)
        channel = self._channel_for(event.selection)
        if channel is None:
            return
        for callback in list(self._callbacks.values()):
            callback(channel)

    def serve_request(self, event: SelectionRequest) -> None:
        """Answer a SelectionRequest for a selection we own.

        Supports TARGETS, UTF8_STRING and STRING; anything else, or a
        selection we no longer hold content for, is refused.
        """
        from Xlib.protocol.event import SelectionNotify

        targets_atom = self.display.intern_atom("TARGETS")
        utf8_atom = self.display.intern_atom("UTF8_STRING")
        content = self.owned.get(event.selection)
        prop = event.property
        if content is None:
            prop = X.NONE
        elif event.target == targets_atom:
            event.requestor.change_property(
                prop, Xatom.ATOM, 32, [targets_atom, utf8_atom, Xatom.STRING]
            )
        elif event.target in (utf8_atom, Xatom.STRING):
            event.requestor.change_property(prop, event.target, 8, content)
        else:
            prop = X.NONE

        event.requestor.send_event(
            SelectionNotify(
                time=event.time,
                requestor=event.requestor.id,
                selection=event.selection,
                target=event.target,
                property=prop,
            ),
            event_mask=0,
        )
        self.display.flush()

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
        self._loop.remove_reader(self.display.fileno())
        try:
            self.window.destroy()
            self.display.close()
        except Exception as e:
            logger.debug("Error closing X11 display: %s", e)
