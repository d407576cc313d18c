#!/usr/bin/env python3
"""
Unit tests for EchoSuppressor.
"""
from peerclip.echo import EchoSuppressor
from peerclip.selection import SelectionChannel


def test_initially_empty() -> None:
    """Test a fresh suppressor has no pending channels."""
    echo = EchoSuppressor()
    assert echo.pending == set()
    assert echo.consume(SelectionChannel.CLIPBOARD) is False


def test_mark_then_consume_once() -> None:
    """Test a mark is consumed exactly once."""
    echo = EchoSuppressor()
    echo.mark(SelectionChannel.CLIPBOARD)
    assert echo.is_marked(SelectionChannel.CLIPBOARD)
    assert echo.consume(SelectionChannel.CLIPBOARD) is True
    assert echo.consume(SelectionChannel.CLIPBOARD) is False


def test_marks_are_per_channel() -> None:
    """Test marking one channel leaves the other untouched."""
    echo = EchoSuppressor()
    echo.mark(SelectionChannel.PRIMARY)
    assert echo.consume(SelectionChannel.CLIPBOARD) is False
    assert echo.consume(SelectionChannel.PRIMARY) is True


def test_clear() -> None:
    """Test clear drops all marks."""
    echo = EchoSuppressor()
    echo.mark(SelectionChannel.CLIPBOARD)
    echo.mark(SelectionChannel.PRIMARY)
    echo.clear()
    assert not echo.is_marked(SelectionChannel.CLIPBOARD)
    assert not echo.is_marked(SelectionChannel.PRIMARY)
