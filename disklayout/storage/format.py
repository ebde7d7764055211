"""Filesystem formatting.

Supported Filesystems:
    fat32:  EFI system partitions (mkfs.fat -F 32)
    ext4:   Linux native filesystem (mkfs.ext4)
    swap:   Swap space (mkswap)
    zfs:    Becomes a member of the ZFS pool named after the label

Each branch is independent per filesystem tag; "lvm" is not a format target
(volume groups are created by the partition) and, like any unknown tag,
raises FormatError.

Example:
    >>> from disklayout.storage.format import format_device
    >>> format_device("/dev/disk/by-id/ata-X-part1", "fat32", "boot")
"""

from __future__ import annotations

from typing import Union

from disklayout.domain.models import FsType
from disklayout.logging import LoggerFactory
from disklayout.storage import zfs
from disklayout.storage.commands import run_command
from disklayout.storage.exceptions import FormatError, InvalidValueError


log = LoggerFactory.for_layout()


def _format_fat32(device: str, label: str) -> None:
    run_command(["mkfs.fat", "-F", "32", "-n", label, device])


def _format_ext4(device: str, label: str) -> None:
    run_command(["mkfs.ext4", "-L", label, device])


def _format_swap(device: str, label: str) -> None:
    run_command(["mkswap", "-L", label, device])


def _format_zfs(device: str, label: str) -> None:
    zfs.pool_create(label, device)


_FORMATTERS = {
    FsType.FAT32: _format_fat32,
    FsType.EXT4: _format_ext4,
    FsType.SWAP: _format_swap,
    FsType.ZFS: _format_zfs,
}


def format_device(device: str, fs_type: Union[FsType, str], label: str) -> None:
    """Format ``device`` according to ``fs_type``.

    Args:
        device: Stable device path (by-id path, mapper path or LV path)
        fs_type: Filesystem tag or FsType
        label: Filesystem label (pool name for zfs)

    Raises:
        FormatError: If the tag is unsupported
        CommandError: If the mkfs tool fails
    """
    if not device:
        raise FormatError(f"No device to format for `{label}`")
    if not isinstance(fs_type, FsType):
        try:
            fs_type = FsType.parse(fs_type)
        except InvalidValueError as error:
            raise FormatError(f"Invalid partition format: {fs_type}", device) from error

    formatter = _FORMATTERS.get(fs_type)
    if formatter is None:
        raise FormatError(f"Invalid partition format: {fs_type.value}", device)

    log.debug(f"Formatting {device} as {fs_type.value}")
    formatter(device, label)
    if fs_type is FsType.ZFS:
        log.info(f"`{device}` has been added to zfs pool `{label}`")
    else:
        log.info(f"Partition `{label}` has been formatted in {fs_type.value}")
