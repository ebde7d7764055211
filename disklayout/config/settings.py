"""Settings storage for application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "DISK_LAYOUT_SETTINGS_PATH",
        Path.home() / ".config" / "disk-layout" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_SETTLE_TIMEOUT = 30.0
DEFAULT_SETTLE_INTERVAL = 0.25
DEFAULT_SETTLE_BACKOFF = 2.0
DEFAULT_SETTLE_MAX_INTERVAL = 2.0
DEFAULT_MOUNT_ROOT = "/mnt/root"

DEFAULT_SETTINGS: dict[str, Any] = {
    "settle_timeout": DEFAULT_SETTLE_TIMEOUT,
    "settle_interval": DEFAULT_SETTLE_INTERVAL,
    "settle_backoff": DEFAULT_SETTLE_BACKOFF,
    "settle_max_interval": DEFAULT_SETTLE_MAX_INTERVAL,
    "mount_root": DEFAULT_MOUNT_ROOT,
    "key_file": "/root/key_file",
    "key_filename": "key_file",
    "secrets_dir": "etc/secrets/disks",
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings(path: Path | None = None) -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    path = path or SETTINGS_PATH
    if not path.exists():
        return
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def save_settings() -> None:
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(
        json.dumps(settings_store.values, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def set_setting(key: str, value: Any) -> None:
    settings_store.values[key] = value
    save_settings()


def get_float(key: str, default: float = 0.0) -> float:
    value = get_setting(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


load_settings()
