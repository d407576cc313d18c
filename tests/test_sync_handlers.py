#!/usr/bin/env python3
"""
Tests for the shared sync handlers.

Covers remote application ordering, native change handling and local
publication.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest_peerclip import LOCAL_NODE
from peerclip.selection import SelectionChannel
from peerclip.settings import SYNC_PRIMARY
from peerclip.sync_handlers import (
    apply_remote_update,
    handle_clipboard_change,
    publish_local_change,
)
from peerclip.sync_state import SyncContext

CLIP = SelectionChannel.CLIPBOARD


def test_apply_remote_update_accepts_and_records(ctx: SyncContext) -> None:
    """Test an accepted update reaches clipboard, store and echo flag."""
    assert apply_remote_update(ctx, CLIP, 1000, "node-a", "hello") is True
    assert ctx.clipboard.buffers[CLIP] == "hello"
    record = ctx.store.get(CLIP)
    assert (record.text, record.timestamp, record.node) == ("hello", 1000, "node-a")
    assert ctx.echo.is_marked(CLIP)


def test_apply_remote_update_marks_before_write(ctx: SyncContext) -> None:
    """Test the echo mark is set before the clipboard is written."""
    seen: list[bool] = []
    ctx.clipboard.set_text = MagicMock(
        side_effect=lambda channel, text: seen.append(ctx.echo.is_marked(channel))
    )
    apply_remote_update(ctx, CLIP, 1000, "node-a", "hello")
    assert seen == [True]


def test_apply_remote_update_rejects_without_side_effects(ctx: SyncContext) -> None:
    """Test a rejected update changes nothing."""
    assert apply_remote_update(ctx, CLIP, 1000, LOCAL_NODE, "mine") is False
    assert CLIP not in ctx.clipboard.buffers
    assert ctx.store.get(CLIP) is None
    assert not ctx.echo.is_marked(CLIP)


@pytest.mark.asyncio
async def test_failed_write_does_not_swallow_next_user_change(ctx: SyncContext) -> None:
    """Test a failed clipboard write leaves no echo mark behind."""
    ctx.clipboard.set_text = MagicMock(side_effect=RuntimeError("display gone"))
    with pytest.raises(RuntimeError, match="display gone"):
        apply_remote_update(ctx, CLIP, 1000, "node-a", "hello")
    assert not ctx.echo.is_marked(CLIP)
    assert ctx.store.get(CLIP) is None

    ctx.clipboard.buffers[CLIP] = "typed later"
    with patch("peerclip.sync_handlers.publish_local_change") as mock_publish:
        await handle_clipboard_change(ctx, CLIP)
    mock_publish.assert_called_once_with(ctx, CLIP, "typed later")


@pytest.mark.asyncio
async def test_handle_clipboard_change_consumes_echo(ctx: SyncContext) -> None:
    """Test a change caused by a remote write is not published."""
    ctx.echo.mark(CLIP)
    ctx.clipboard.buffers[CLIP] = "from remote"
    with patch("peerclip.sync_handlers.publish_local_change") as mock_publish:
        await handle_clipboard_change(ctx, CLIP)
    mock_publish.assert_not_called()
    assert not ctx.echo.is_marked(CLIP)


@pytest.mark.asyncio
async def test_handle_clipboard_change_publishes_user_change(ctx: SyncContext) -> None:
    """Test a user change is read and published."""
    ctx.clipboard.buffers[CLIP] = "typed"
    with patch("peerclip.sync_handlers.publish_local_change") as mock_publish:
        await handle_clipboard_change(ctx, CLIP)
    mock_publish.assert_called_once_with(ctx, CLIP, "typed")


@pytest.mark.asyncio
async def test_handle_clipboard_change_skips_missing_text(ctx: SyncContext) -> None:
    """Test a channel without text is not published."""
    with patch("peerclip.sync_handlers.publish_local_change") as mock_publish:
        await handle_clipboard_change(ctx, CLIP)
    mock_publish.assert_not_called()


@pytest.mark.asyncio
async def test_handle_clipboard_change_ignores_disabled_primary(ctx: SyncContext) -> None:
    """Test PRIMARY changes are ignored while primary sync is disabled."""
    ctx.clipboard.buffers[SelectionChannel.PRIMARY] = "selected"
    with patch("peerclip.sync_handlers.publish_local_change") as mock_publish:
        await handle_clipboard_change(ctx, SelectionChannel.PRIMARY)
        mock_publish.assert_not_called()
        ctx.settings.set(SYNC_PRIMARY, True)
        await handle_clipboard_change(ctx, SelectionChannel.PRIMARY)
        mock_publish.assert_called_once_with(ctx, SelectionChannel.PRIMARY, "selected")


@pytest.mark.asyncio
async def test_publish_local_change_records_and_pushes(ctx: SyncContext) -> None:
    """Test publication records local state and pushes an update."""
    with patch("peerclip.client.send_message", new_callable=AsyncMock) as mock_send, \
        patch("peerclip.sync_handlers.current_timestamp", return_value=4242):
        task = publish_local_change(ctx, CLIP, "copied")
        await task

    record = ctx.store.get(CLIP)
    assert (record.text, record.timestamp, record.node) == ("copied", 4242, LOCAL_NODE)
    mock_send.assert_called_once_with(
        ctx,
        {
            "type": "update",
            "node": LOCAL_NODE,
            "selection": "CLIPBOARD",
            "timestamp": 4242,
            "text": "copied",
            "secret": "s",
        },
    )
