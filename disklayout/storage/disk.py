"""Disk node of the layered device tree."""

from __future__ import annotations

from typing import Optional

from disklayout.domain.models import DiskConfig
from disklayout.logging import LoggerFactory
from disklayout.storage import gpt
from disklayout.storage.exceptions import LayoutError
from disklayout.storage.partition import Partition


log = LoggerFactory.for_layout()


class Disk:
    """A physical disk and its partitions, kept sorted by id."""

    def __init__(self, config: DiskConfig):
        config.partitions.sort(key=lambda p: p.id)
        self.config = config
        self.partitions = [Partition(p) for p in config.partitions]

    @property
    def device(self) -> str:
        return self.config.device

    @property
    def read_only(self) -> bool:
        return self.config.read_only

    @property
    def contains_system(self) -> bool:
        return self.config.contains_system

    def set_device(self, device: str) -> None:
        self.config.device = device

    def _require_device(self) -> str:
        if not self.device or self.config.placeholder is not None:
            raise LayoutError(f"Disk device `{self.device}` is not mapped to a real device")
        return self.device

    def wipe(self) -> None:
        gpt.wipe_disk(self._require_device())

    def create(self, key_file: Optional[str], passphrase: Optional[str]) -> None:
        """Create then format every partition.

        All table entries are created and resolved before anything is
        formatted, so the kernel is never asked to re-read a table while a
        partition of the same disk is being written to.
        """
        device = self._require_device()
        for partition in self.partitions:
            partition.create(device)
        gpt.notify_kernel(device)
        for partition in self.partitions:
            partition.format(key_file, passphrase)
        log.info(f"Disk `{device}` created with {len(self.partitions)} partition(s)")

    def open(self, passphrase: Optional[str] = None) -> None:
        for partition in self.partitions:
            partition.open(passphrase)
        log.info(f"Disk `{self.device}` opened")

    def close(self) -> None:
        for partition in self.partitions:
            partition.close()
        log.info(f"Disk `{self.device}` closed")

    def refresh_state(self) -> None:
        for partition in self.partitions:
            partition.refresh_state()

    def to_config(self) -> DiskConfig:
        self.config.partitions = [p.to_config() for p in self.partitions]
        return self.config

    def __repr__(self) -> str:
        return f"Disk({self.device!r}, partitions={len(self.partitions)})"
