#!/usr/bin/env python3
"""Stable random identifier for this node.

The identifier is stamped on every locally produced update and used to
drop updates that originated here. It is generated once and persisted in
the settings store; it is never regenerated while a value exists.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from peerclip.settings import NODE_ID

if TYPE_CHECKING:
    from peerclip.settings import SettingsStore

logger = logging.getLogger(__name__)


def ensure_node_id(settings: SettingsStore) -> str:
    """Return the persisted node id, creating it on first use.

    Args:
        settings: Settings store holding the node-id key.

    Returns:
        The node identifier.
    """
    existing = settings.get_str(NODE_ID)
    if existing and existing.strip():
        return existing
    node_id = str(uuid.uuid4())
    settings.set(NODE_ID, node_id)
    logger.info("Generated new node id %s", node_id)
    return node_id
