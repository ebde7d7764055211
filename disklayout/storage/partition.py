"""Partition node of the layered device tree.

A partition owns at most one volume group and any number of pooled
filesystems. It is both Activatable (LUKS and volume-group activation) and
Mountable (its by-id path).

Lifecycle:
    create()  -> table entry + identity resolution (pass 1)
    format()  -> encryption, volume group / pool / mkfs (pass 2)
    open()    -> luksOpen -> wait for mapper node -> vgchange -a y
    close()   -> vgchange -a n -> luksClose
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from disklayout.domain.models import FsType, PartitionConfig, PartitionType
from disklayout.logging import LoggerFactory
from disklayout.storage import gpt, luks, settle, zfs
from disklayout.storage.exceptions import EncryptionError, LayoutError
from disklayout.storage.format import format_device
from disklayout.storage.lvm import LogicalVolume, VolumeGroup
from disklayout.storage.mount import mount_device, unmount_device
from disklayout.storage.resolver import resolve_partition
from disklayout.storage.zfs import PoolFilesystem


log = LoggerFactory.for_layout()


class Partition:
    """One GPT partition and everything layered on it."""

    def __init__(self, config: PartitionConfig):
        self.config = config
        self.volume_group: Optional[VolumeGroup] = None
        if config.lvm:
            self.volume_group = VolumeGroup(config.label, config.lvm)
        self.filesystems = [PoolFilesystem(fs, config.label) for fs in config.zfs]
        self._opened = False
        self._mounted = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        return self.config.id

    @property
    def label(self) -> str:
        return self.config.label

    @property
    def kind(self) -> PartitionType:
        return self.config.kind

    @property
    def is_root(self) -> bool:
        return self.config.is_root

    @property
    def is_system(self) -> bool:
        return self.config.is_system

    @property
    def is_encrypted(self) -> bool:
        return self.config.encrypted

    @property
    def logical_volumes(self) -> list[LogicalVolume]:
        return self.volume_group.volumes if self.volume_group else []

    @property
    def is_opened(self) -> bool:
        return self._opened

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def mount_source(self) -> Optional[str]:
        return self.config.device_by_id

    @property
    def format_target(self) -> Optional[str]:
        """Device the content of the partition is written to."""
        if self.config.encrypted:
            return self.config.luks_mapper
        return self.config.device_by_id

    def _is_pool_member(self) -> bool:
        return bool(self.filesystems) or self.config.filesystem is FsType.ZFS

    def _require_device(self) -> str:
        if not self.config.device_by_id:
            raise LayoutError(f"Partition `{self.label}` has no resolved device")
        return self.config.device_by_id

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(self, disk_device: str) -> None:
        """Add the table entry on ``disk_device`` and record the partition identities."""
        gpt.create_partition(disk_device, self.config.size, self.kind, self.label)
        resolved = resolve_partition(disk_device, self.id, self.label)
        self.config.device = resolved.device
        self.config.device_by_id = resolved.device_by_id
        self.config.device_by_partlabel = resolved.device_by_partlabel
        if self.config.encrypted:
            self.config.luks_mapper = luks.mapper_path(self.label)

    def format(self, key_file: Optional[str], passphrase: Optional[str]) -> None:
        """Write the content of the partition.

        Encryption first, then exactly one of: volume group, pool member,
        plain filesystem. Pooled filesystems are created last.
        """
        device = self._require_device()

        if self.config.encrypted:
            if not passphrase:
                raise EncryptionError(f"No passphrase for encrypted partition `{self.label}`")
            # the key file is what unlocks the partition at boot
            if not key_file:
                raise EncryptionError(f"No key file for encrypted partition `{self.label}`")
            if not os.path.isfile(key_file):
                raise EncryptionError(f"Key file `{key_file}` does not exist")
            luks.format_device(device, passphrase)
            luks.add_key(device, key_file, passphrase)
            luks.open_device(device, self.label, passphrase)
            settle.wait_for_path(self.config.luks_mapper)
            self._opened = True

        target = self.format_target
        if self.volume_group is not None:
            self.volume_group.create(target)
            self._opened = True
        elif self._is_pool_member():
            zfs.pool_create(self.label, target)
        else:
            format_device(target, self.config.fs_type, self.label)

        for filesystem in self.filesystems:
            filesystem.create()

        log.info(f"Partition `{self.label}` formatted")

    # ------------------------------------------------------------------
    # Activatable
    # ------------------------------------------------------------------

    def open(self, passphrase: Optional[str] = None) -> None:
        if self._opened:
            return

        if self.config.encrypted:
            if not passphrase:
                raise EncryptionError(f"No passphrase to open `{self.label}`")
            luks.open_device(self._require_device(), self.label, passphrase)
            settle.wait_for_path(self.config.luks_mapper or luks.mapper_path(self.label))

        if self.volume_group is not None:
            self.volume_group.open(passphrase)

        self._opened = True
        log.info(f"Partition `{self.label}` opened")

    def close(self) -> None:
        if not self._opened:
            return

        if self.volume_group is not None:
            self.volume_group.close()

        if self.config.encrypted:
            luks.close_device(self.label)

        self._opened = False
        log.info(f"Partition `{self.label}` closed")

    def refresh_state(self) -> None:
        """Adopt an activation left behind by a previous invocation."""
        if self._opened:
            return
        active = self.config.encrypted and luks.is_open(self.label)
        if self.volume_group is not None:
            # an open LUKS mapping may carry an active group
            if active or os.path.isdir(f"/dev/{self.volume_group.name}"):
                self.volume_group.mark_opened()
                active = True
        if active:
            self._opened = True
            log.debug(f"Partition `{self.label}` found already open")

    # ------------------------------------------------------------------
    # Mountable
    # ------------------------------------------------------------------

    def mount(self, mountpoint: str | Path) -> None:
        if self._mounted:
            return
        mount_device(self.config.device_by_id, mountpoint)
        self._mounted = True

    def unmount(self) -> None:
        if not self._mounted:
            return
        unmount_device(self.config.device_by_id)
        self._mounted = False

    def to_config(self) -> PartitionConfig:
        return self.config

    def __repr__(self) -> str:
        return f"Partition(id={self.id}, label={self.label!r})"
