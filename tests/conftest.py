#!/usr/bin/env python3
"""Pytest fixtures for peerclip tests.

Provides memory-only settings, an in-memory clipboard and a sync
context wired to them.
"""

import pytest

from conftest_peerclip import LOCAL_NODE, SECRET
from peerclip.clipboard import MemoryClipboard
from peerclip.settings import SHARED_SECRET, SettingsStore
from peerclip.sync_state import SyncContext


@pytest.fixture
def settings() -> SettingsStore:
    """Create a memory-only SettingsStore with the test secret."""
    store = SettingsStore()
    store.set(SHARED_SECRET, SECRET)
    return store


@pytest.fixture
def clipboard() -> MemoryClipboard:
    """Create an in-memory clipboard without change notification."""
    return MemoryClipboard()


@pytest.fixture
def ctx(settings: SettingsStore, clipboard: MemoryClipboard) -> SyncContext:
    """Create a SyncContext for the local node."""
    return SyncContext(settings=settings, clipboard=clipboard, node_id=LOCAL_NODE)
