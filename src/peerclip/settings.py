#!/usr/bin/env python3
"""Persisted configuration store.

Settings live in a small JSON file, by default under the per-user
application directory reported by click. Every key has a default and a
type; values are validated on load and on set. Command-line overrides
shadow file values for the lifetime of the process without being
written back.

Components subscribe to individual keys with connect() and are called
back with the key name whenever its effective value changes, either
through set() or through reload().
"""

from __future__ import annotations

import itertools
import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

LISTEN_PORT = "listen-port"
PEER_ENDPOINT = "peer-endpoint"
SHARED_SECRET = "shared-secret"
POLL_INTERVAL = "poll-interval"
SYNC_PRIMARY = "sync-primary"
NODE_ID = "node-id"

# Default listen port, also used when a peer endpoint omits its port.
DEFAULT_PORT: int = 7100

DEFAULTS: dict[str, Any] = {
    LISTEN_PORT: DEFAULT_PORT,
    PEER_ENDPOINT: "",
    SHARED_SECRET: "",
    POLL_INTERVAL: 0,
    SYNC_PRIMARY: False,
    NODE_ID: "",
}

SETTINGS_FILENAME = "settings.json"


class ConfigurationError(ValueError):
    """
    Exception raised for invalid configuration.

    Raised for unknown keys, values of the wrong type, out-of-range ports
    and settings files that cannot be read or parsed.
    """

    pass


def default_settings_path() -> Path:
    """Return the per-user settings file path."""
    import click

    return Path(click.get_app_dir("peerclip")) / SETTINGS_FILENAME


def validate_value(key: str, value: Any) -> Any:
    """Check that value has the type expected for key.

    Args:
        key: Settings key.
        value: Candidate value.

    Returns:
        The value, unchanged.

    Raises:
        ConfigurationError: If the key is unknown or the type is wrong.
    """
    if key not in DEFAULTS:
        raise ConfigurationError(f"Unknown setting: {key}")
    expected = type(DEFAULTS[key])
    # bool is a subclass of int; keep integer settings strictly integral
    if expected is int and isinstance(value, bool):
        raise ConfigurationError(f"Setting {key} must be an integer, got {value!r}")
    if not isinstance(value, expected):
        raise ConfigurationError(
            f"Setting {key} must be of type {expected.__name__}, got {value!r}"
        )
    return value


def validate_port(port: int) -> int:
    """Return port if it is a usable TCP port.

    Raises:
        ConfigurationError: If port is outside 1-65535.
    """
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise ConfigurationError(f"Invalid listen port: {port}")
    return port


class SettingsStore:
    """Typed key/value settings with change notification.

    Args:
        path: JSON file backing the store, or None for a memory-only store.
        overrides: Values that shadow the file without being persisted.
    """

    def __init__(
        self, path: Path | str | None = None, overrides: dict[str, Any] | None = None
    ) -> None:
        self.path = Path(path) if path is not None else None
        self._values: dict[str, Any] = dict(DEFAULTS)
        self._overrides: dict[str, Any] = {}
        self._handlers: dict[int, tuple[str, Callable[[str], None]]] = {}
        self._handler_ids = itertools.count(1)
        for key, value in (overrides or {}).items():
            self._overrides[key] = validate_value(key, value)
        if self.path is not None:
            self._values = self._read_file()

    def _read_file(self) -> dict[str, Any]:
        """Load values from the backing file, falling back to defaults."""
        values = dict(DEFAULTS)
        if self.path is None or not self.path.exists():
            return values
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read settings file {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Settings file {self.path} must contain a JSON object")
        for key, value in raw.items():
            if key not in DEFAULTS:
                logger.warning("Ignoring unknown setting %s in %s", key, self.path)
                continue
            values[key] = validate_value(key, value)
        return values

    def _write_file(self) -> None:
        """Atomically write the persisted values to the backing file."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(self._values, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Any:
        """Return the effective value of key."""
        if key in self._overrides:
            return self._overrides[key]
        try:
            return self._values[key]
        except KeyError:
            raise ConfigurationError(f"Unknown setting: {key}") from None

    def get_int(self, key: str) -> int:
        return int(self.get(key))

    def get_str(self, key: str) -> str:
        return str(self.get(key))

    def get_bool(self, key: str) -> bool:
        return bool(self.get(key))

    def set(self, key: str, value: Any) -> None:
        """Validate, persist and publish a new value for key.

        Raises:
            ConfigurationError: If the value is invalid for key.
            OSError: If the settings file cannot be written.
        """
        validate_value(key, value)
        before = self.get(key)
        self._values[key] = value
        self._write_file()
        if self.get(key) != before:
            self._notify(key)

    def reload(self) -> list[str]:
        """Re-read the backing file and notify keys whose value changed.

        Returns:
            The keys whose effective value changed.

        Raises:
            ConfigurationError: If the file is invalid; current values are kept.
        """
        before = {key: self.get(key) for key in DEFAULTS}
        self._values = self._read_file()
        changed = [key for key in DEFAULTS if self.get(key) != before[key]]
        for key in changed:
            self._notify(key)
        return changed

    def connect(self, key: str, callback: Callable[[str], None]) -> int:
        """Subscribe callback to changes of key; returns a handler id."""
        if key not in DEFAULTS:
            raise ConfigurationError(f"Unknown setting: {key}")
        handler_id = next(self._handler_ids)
        self._handlers[handler_id] = (key, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._handlers.pop(handler_id, None)

    def _notify(self, key: str) -> None:
        for handler_key, callback in list(self._handlers.values()):
            if handler_key == key:
                callback(key)
