"""Whole-layout lifecycle orchestration.

A Layout is the root of the device tree. It loads and saves the persisted
JSON document and drives the cross-layer order of operations:

    create: destroy pools -> per disk (unless read-only): wipe, create, format
    open:   per disk open (LUKS -> LVM) -> import all pools
    close:  export all pools -> per disk close (LVM -> LUKS)

Example:
    layout = Layout.load("layout.json")
    layout.set_device_mapping({"MAIN": "/dev/sda"})
    layout.create("/root/key_file", passphrase)
    layout.close()
    layout.save("layout.out.json")
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Optional

from disklayout.domain.models import LayoutConfig
from disklayout.logging import LoggerFactory, operation_context
from disklayout.storage import zfs
from disklayout.storage.disk import Disk
from disklayout.storage.exceptions import FilesystemIOError, InvalidConfigurationError
from disklayout.storage.validation import validate_layout_config


log = LoggerFactory.for_layout()


def parse_device_mapping(entries: Iterable[str]) -> dict[str, str]:
    """Parse ``NAME=/dev/...`` strings into a placeholder mapping."""
    mapping: dict[str, str] = {}
    for entry in entries:
        name, sep, device = entry.partition("=")
        if not sep or not name or not device:
            raise InvalidConfigurationError("device", f"expected NAME=DEVICE, got {entry!r}")
        mapping[name.lstrip("#")] = device
    return mapping


class Layout:
    """The machine's storage layout: an ordered list of disks."""

    def __init__(self, config: LayoutConfig):
        self.config = config
        self.disks = [Disk(d) for d in config.disks]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, text: str) -> Layout:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as error:
            raise InvalidConfigurationError("layout", f"invalid JSON: {error}") from error
        if not isinstance(data, (dict, list)):
            raise InvalidConfigurationError("layout", "expected an object or a list of disks")
        return cls(LayoutConfig.from_dict(data))

    @classmethod
    def load(cls, path: Path | str) -> Layout:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as error:
            raise FilesystemIOError(path, error.strerror or str(error)) from error
        log.debug(f"Layout loaded from {path}")
        return cls.from_json(text)

    def to_config(self) -> LayoutConfig:
        self.config.disks = [d.to_config() for d in self.disks]
        return self.config

    def to_json(self) -> str:
        return json.dumps(self.to_config().to_dict(), indent=4)

    def save(self, path: Path | str) -> None:
        path = Path(path)
        try:
            path.write_text(self.to_json() + "\n", encoding="utf-8")
        except OSError as error:
            raise FilesystemIOError(path, error.strerror or str(error)) from error
        log.info(f"Layout written to {path}")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def validate(self) -> None:
        validate_layout_config(self.to_config())

    def set_device_mapping(self, mapping: Mapping[str, str]) -> None:
        """Replace ``#NAME`` disk placeholders with real devices.

        Raises:
            InvalidConfigurationError: If a placeholder has no mapping
        """
        for index, disk in enumerate(self.disks):
            name = disk.config.placeholder
            if name is None:
                continue
            if name not in mapping:
                raise InvalidConfigurationError(
                    f"disks[{index}].device", f"no mapping for placeholder #{name}"
                )
            disk.set_device(mapping[name])
            log.debug(f"Placeholder #{name} mapped to {mapping[name]}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, key_file: Optional[str], passphrase: Optional[str]) -> None:
        """Wipe and build every writable disk.

        Nothing is rolled back on failure: a partially created layout is
        left for inspection.
        """
        with operation_context("create", disks=len(self.disks)) as op_log:
            zfs.wipeout()
            for disk in self.disks:
                if disk.read_only:
                    op_log.info(f"Skipping read-only disk `{disk.device}`")
                    continue
                disk.wipe()
                disk.create(key_file, passphrase)
            op_log.debug(f"Resulting layout: {self.to_json()}")

    def open(self, passphrase: Optional[str] = None) -> None:
        with operation_context("open", disks=len(self.disks)):
            for disk in self.disks:
                disk.open(passphrase)
            zfs.pool_import_all()

    def close(self) -> None:
        with operation_context("close", disks=len(self.disks)):
            zfs.pool_export_all()
            for disk in self.disks:
                disk.close()

    def refresh_state(self) -> None:
        """Pick up activations made by an earlier process before closing."""
        for disk in self.disks:
            disk.refresh_state()
