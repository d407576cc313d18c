#!/usr/bin/env python3
"""Tests for the X11 clipboard backend using mocked Xlib objects."""
import socket
from collections.abc import AsyncGenerator, Generator
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from Xlib import X, Xatom

from peerclip.clipboard_x11 import ClipboardError, X11Clipboard, open_display
from peerclip.selection import SelectionChannel

ATOMS = {"CLIPBOARD": 100, "UTF8_STRING": 101, "TARGETS": 102, "PEERCLIP_SEL": 103, "INCR": 104}
CLIP = SelectionChannel.CLIPBOARD


class SetSelectionOwnerNotify:
    """Stand-in for the XFixes owner-change event class."""

    type = 87

    def __init__(self, selection: int, owner: object) -> None:
        self.selection = selection
        self.owner = owner


@pytest.fixture
def fd_pair() -> Generator[tuple[socket.socket, socket.socket], None, None]:
    """Provide a real file descriptor for the event loop reader."""
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def window() -> MagicMock:
    win = MagicMock()
    win.id = 5
    return win


@pytest.fixture
def display(fd_pair: tuple[socket.socket, socket.socket]) -> MagicMock:
    disp = MagicMock()
    disp.intern_atom.side_effect = lambda name: ATOMS[name]
    disp.fileno.return_value = fd_pair[0].fileno()
    disp.pending_events.return_value = 0
    disp.get_selection_owner.return_value = X.NONE
    return disp


@pytest_asyncio.fixture
async def x11(display: MagicMock, window: MagicMock) -> AsyncGenerator[X11Clipboard, None]:
    with patch("peerclip.clipboard_x11.create_hidden_window", return_value=window), \
        patch("peerclip.clipboard_x11.register_xfixes_events") as mock_register:
        clipboard = X11Clipboard(display=display)
    mock_register.assert_called_once_with(display, window, [100, Xatom.PRIMARY])
    yield clipboard
    clipboard.close()


def test_open_display_requires_display(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test a missing DISPLAY raises ClipboardError."""
    monkeypatch.delenv("DISPLAY", raising=False)
    with pytest.raises(ClipboardError, match="DISPLAY"):
        open_display()


@pytest.mark.asyncio
async def test_set_text_takes_ownership(x11: X11Clipboard, display: MagicMock, window: MagicMock) -> None:
    """Test set_text stores content and claims the selection."""
    display.get_selection_owner.return_value = window
    x11.set_text(CLIP, "héllo")
    window.set_selection_owner.assert_called_once_with(100, X.CurrentTime)
    assert x11.owned[100] == "héllo".encode("utf-8")
    assert await x11.get_text(CLIP) == "héllo"
    window.convert_selection.assert_not_called()


@pytest.mark.asyncio
async def test_get_text_no_owner(x11: X11Clipboard) -> None:
    """Test an unowned selection has no text."""
    assert await x11.get_text(CLIP) is None


@pytest.mark.asyncio
async def test_get_text_converts_from_other_owner(
    x11: X11Clipboard, display: MagicMock, window: MagicMock
) -> None:
    """Test text owned by another client is fetched via UTF8_STRING."""
    display.get_selection_owner.return_value = MagicMock(id=42)
    window.get_full_property.return_value = MagicMock(property_type=101, value=b"other app")
    notify = MagicMock(property=103)
    with patch("peerclip.clipboard_x11.wait_for_event_type", return_value=notify):
        assert await x11.get_text(CLIP) == "other app"
    window.convert_selection.assert_called_once_with(100, 101, 103, X.CurrentTime)
    window.delete_property.assert_called_once_with(103)


@pytest.mark.asyncio
async def test_get_text_refused_conversion(
    x11: X11Clipboard, display: MagicMock, window: MagicMock
) -> None:
    """Test a refused conversion yields no text."""
    display.get_selection_owner.return_value = MagicMock(id=42)
    with patch("peerclip.clipboard_x11.wait_for_event_type", return_value=MagicMock(property=X.NONE)):
        assert await x11.get_text(CLIP) is None
    window.get_full_property.assert_not_called()


@pytest.mark.asyncio
async def test_get_text_incr_skipped(x11: X11Clipboard, display: MagicMock, window: MagicMock) -> None:
    """Test INCR transfers are not supported."""
    display.get_selection_owner.return_value = MagicMock(id=42)
    window.get_full_property.return_value = MagicMock(property_type=104, value=b"")
    with patch("peerclip.clipboard_x11.wait_for_event_type", return_value=MagicMock(property=103)):
        assert await x11.get_text(CLIP) is None


@pytest.mark.asyncio
async def test_owner_change_notifies(x11: X11Clipboard, display: MagicMock) -> None:
    """Test ownership changes are reported and foreign owners drop our content."""
    seen: list[SelectionChannel] = []
    x11.connect_changed(seen.append)
    x11.owned[100] = b"old"
    display.pending_events.side_effect = [1, 0]
    display.next_event.return_value = SetSelectionOwnerNotify(100, MagicMock(id=42))
    x11.process_events()
    assert seen == [CLIP]
    assert 100 not in x11.owned


@pytest.mark.asyncio
async def test_own_owner_change_keeps_content(x11: X11Clipboard, display: MagicMock, window: MagicMock) -> None:
    """Test our own ownership change is still reported but keeps content."""
    seen: list[SelectionChannel] = []
    x11.connect_changed(seen.append)
    x11.owned[Xatom.PRIMARY] = b"mine"
    display.pending_events.side_effect = [1, 0]
    display.next_event.return_value = SetSelectionOwnerNotify(Xatom.PRIMARY, window)
    x11.process_events()
    assert seen == [SelectionChannel.PRIMARY]
    assert x11.owned[Xatom.PRIMARY] == b"mine"


@pytest.mark.asyncio
async def test_serve_utf8_request(x11: X11Clipboard, display: MagicMock) -> None:
    """Test SelectionRequest for UTF8_STRING is answered with our content."""
    x11.owned[100] = b"served"
    requestor = MagicMock(id=7)
    event = MagicMock(type=X.SelectionRequest, selection=100, target=101, property=200, time=0)
    event.requestor = requestor
    display.pending_events.side_effect = [1, 0]
    display.next_event.return_value = event
    with patch("Xlib.protocol.event.SelectionNotify") as mock_notify:
        x11.process_events()
    requestor.change_property.assert_called_once_with(200, 101, 8, b"served")
    assert mock_notify.call_args.kwargs["property"] == 200
    requestor.send_event.assert_called_once()


@pytest.mark.asyncio
async def test_serve_targets_request(x11: X11Clipboard) -> None:
    """Test TARGETS lists the supported conversions."""
    x11.owned[100] = b"served"
    event = MagicMock(selection=100, target=102, property=200, time=0)
    with patch("Xlib.protocol.event.SelectionNotify"):
        x11.serve_request(event)
    event.requestor.change_property.assert_called_once_with(
        200, Xatom.ATOM, 32, [102, 101, Xatom.STRING]
    )


@pytest.mark.asyncio
async def test_serve_refuses_without_content(x11: X11Clipboard) -> None:
    """Test requests for selections we hold nothing for are refused."""
    event = MagicMock(selection=100, target=101, property=200, time=0)
    with patch("Xlib.protocol.event.SelectionNotify") as mock_notify:
        x11.serve_request(event)
    event.requestor.change_property.assert_not_called()
    assert mock_notify.call_args.kwargs["property"] == X.NONE


@pytest.mark.asyncio
async def test_notify_disabled(display: MagicMock, window: MagicMock) -> None:
    """Test notify=False offers no change signal."""
    with patch("peerclip.clipboard_x11.create_hidden_window", return_value=window), \
        patch("peerclip.clipboard_x11.register_xfixes_events"):
        clipboard = X11Clipboard(display=display, notify=False)
    try:
        assert clipboard.connect_changed(lambda channel: None) is None
    finally:
        clipboard.close()
    display.close.assert_called_once()
