"""CLI handling for peerclip.

This module provides the command-line interface for peerclip, handling
argument parsing via click, logging configuration, settings overrides,
clipboard backend selection, and running the sync service.

Usage:
    peerclip [--config PATH] [--peer URI] [--listen-port N] [--secret S]
             [--poll-interval N] [--sync-primary/--no-sync-primary]
             [--backend auto|x11|memory] [--poll-local] [--verbose]
    peerclip --show-node-id
"""

import os
import sys
from typing import Any

import click

from peerclip.main_logging import configure_logging
from peerclip.settings import (
    LISTEN_PORT,
    PEER_ENDPOINT,
    POLL_INTERVAL,
    SHARED_SECRET,
    SYNC_PRIMARY,
    ConfigurationError,
    SettingsStore,
    default_settings_path,
)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Settings file (default: per-user application directory)",
)
@click.option(
    "--peer",
    default=None,
    help="Peer endpoint, e.g. tcp://host:7100",
)
@click.option(
    "--listen-port",
    type=click.IntRange(1, 65535),
    default=None,
    help="Local port of the built-in sync server",
)
@click.option(
    "--secret",
    default=None,
    help="Shared secret; must match on both nodes",
)
@click.option(
    "--poll-interval",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds between pulls from the peer (0 disables)",
)
@click.option(
    "--sync-primary/--no-sync-primary",
    default=None,
    help="Also synchronize the PRIMARY selection",
)
@click.option(
    "--backend",
    type=click.Choice(["auto", "x11", "memory"]),
    default="auto",
    show_default=True,
    help="Clipboard backend",
)
@click.option(
    "--poll-local",
    is_flag=True,
    help="Detect local changes by polling instead of X11 events",
)
@click.option(
    "--show-node-id",
    is_flag=True,
    help="Print this node's identifier and exit",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)
def main(
    config_path: str | None,
    peer: str | None,
    listen_port: int | None,
    secret: str | None,
    poll_interval: int | None,
    sync_primary: bool | None,
    backend: str,
    poll_local: bool,
    show_node_id: bool,
    verbose: bool,
) -> None:
    """Synchronize clipboard selections with one peer over TCP."""
    configure_logging(verbose)

    overrides: dict[str, Any] = {}
    for key, value in (
        (PEER_ENDPOINT, peer),
        (LISTEN_PORT, listen_port),
        (SHARED_SECRET, secret),
        (POLL_INTERVAL, poll_interval),
        (SYNC_PRIMARY, sync_primary),
    ):
        if value is not None:
            overrides[key] = value

    path = config_path if config_path is not None else default_settings_path()
    try:
        settings = SettingsStore(path, overrides=overrides)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    if show_node_id:
        from peerclip.node_identity import ensure_node_id

        click.echo(ensure_node_id(settings))
        return

    _run_mode(settings, _resolve_backend(backend), poll_local)


def _resolve_backend(backend: str) -> str:
    """Pick x11 when a display is available, memory otherwise."""
    if backend != "auto":
        return backend
    if os.environ.get("DISPLAY"):
        return "x11"
    click.echo("Warning: DISPLAY is not set, using in-memory clipboard", err=True)
    return "memory"


def _run_mode(settings: SettingsStore, backend: str, poll_local: bool) -> None:
    """Run the sync service with the chosen clipboard backend.

    Args:
        settings: Configuration store.
        backend: "x11" or "memory".
        poll_local: Force local change polling.
    """
    import asyncio

    from peerclip.clipboard import ClipboardProvider, MemoryClipboard
    from peerclip.clipboard_x11 import ClipboardError
    from peerclip.service import run_service

    def make_clipboard() -> ClipboardProvider:
        if backend == "x11":
            from peerclip.clipboard_x11 import X11Clipboard

            return X11Clipboard(notify=not poll_local)
        return MemoryClipboard(notify=False)

    try:
        asyncio.run(run_service(settings, make_clipboard))
    except ClipboardError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
