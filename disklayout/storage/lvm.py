"""LVM volume groups and logical volumes.

A partition carrying logical volumes gets exactly one volume group named
``vg-<partition label>`` with the partition (or its LUKS mapping) as the
only physical volume. Logical volumes are reachable at
``/dev/vg-<label>/<volume label>``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from disklayout.domain.models import PartitionType, VolumeConfig
from disklayout.logging import LoggerFactory
from disklayout.storage.commands import run_command
from disklayout.storage.exceptions import VolumeGroupError
from disklayout.storage.format import format_device
from disklayout.storage.mount import mount_device, unmount_device


log = LoggerFactory.for_lvm()


def volume_group_name(label: str) -> str:
    return f"vg-{label}"


class LogicalVolume:
    """A logical volume; implements the Mountable contract."""

    def __init__(self, config: VolumeConfig, group_name: str):
        self.config = config
        self.group_name = group_name
        self._mounted = False

    @property
    def label(self) -> str:
        return self.config.label

    @property
    def is_root(self) -> bool:
        return self.config.is_root

    @property
    def kind(self) -> PartitionType:
        return PartitionType.parse(self.config.volume_type)

    @property
    def device_path(self) -> str:
        return f"/dev/{self.group_name}/{self.config.label}"

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def mount_source(self) -> str:
        return self.config.device or self.device_path

    def create(self) -> None:
        """Carve the volume from its group, record its path and format it."""
        size = self.config.size
        if size.is_null:
            size_args = ["-l", "100%FREE"]
        else:
            size_args = ["-L", size.to_lvm_string()]
        run_command(["lvcreate", *size_args, "-n", self.config.label, self.group_name])
        self.config.device = self.device_path
        log.info(f"Logical volume `{self.config.label}` created in `{self.group_name}`")
        format_device(self.config.device, self.config.fs_type, self.config.label)

    def mount(self, mountpoint: str | Path) -> None:
        if self._mounted:
            return
        mount_device(self.mount_source, mountpoint)
        self._mounted = True

    def unmount(self) -> None:
        if not self._mounted:
            return
        unmount_device(self.mount_source)
        self._mounted = False

    def __repr__(self) -> str:
        return f"LogicalVolume({self.device_path!r})"


class VolumeGroup:
    """The volume group of one partition; implements the Activatable contract."""

    def __init__(self, label: str, volumes: list[VolumeConfig]):
        self.name = volume_group_name(label)
        volumes.sort(key=lambda v: v.id)
        self.volumes = [LogicalVolume(volume, self.name) for volume in volumes]
        self._opened = False

    @property
    def is_opened(self) -> bool:
        return self._opened

    def create(self, physical_device: Optional[str]) -> None:
        """Initialize ``physical_device`` as a PV, build the group, then every volume."""
        if not physical_device:
            raise VolumeGroupError(f"No physical device for `{self.name}`")
        run_command(["pvcreate", "-y", "-ff", physical_device])
        run_command(["vgcreate", self.name, physical_device])
        log.info(f"Volume group `{self.name}` created on `{physical_device}`")
        # a freshly created group is active
        self._opened = True
        for volume in self.volumes:
            volume.create()

    def open(self, passphrase: Optional[str] = None) -> None:
        if self._opened:
            return
        run_command(["vgchange", "-a", "y", self.name])
        self._opened = True
        log.info(f"Volume group `{self.name}` activated")

    def mark_opened(self) -> None:
        """Record that the group was found active on the system."""
        self._opened = True

    def close(self) -> None:
        if not self._opened:
            return
        run_command(["vgchange", "-a", "n", self.name])
        self._opened = False
        log.info(f"Volume group `{self.name}` deactivated")

    def __repr__(self) -> str:
        return f"VolumeGroup({self.name!r}, volumes={len(self.volumes)})"
