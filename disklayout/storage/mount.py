"""Generic mount/umount helpers with secure subprocess handling.

All calls use argument lists (never a shell), and mountpoints are checked
for shell metacharacters and path traversal before anything is run.

Functions:
    - mount_device(): Mount a block device or ZFS dataset on a directory
    - unmount_device(): Unmount a block device or ZFS dataset
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from disklayout.logging import LoggerFactory
from disklayout.storage.commands import run_command
from disklayout.storage.exceptions import (
    CommandError,
    MountFailedError,
    UnmountFailedError,
)


log = LoggerFactory.for_layout()

_FORBIDDEN_CHARS = (";", "&", "|", "$", "`", "\n", "\r")


def _validate_mountpoint(mountpoint: Path) -> str:
    text = str(mountpoint)
    if not mountpoint.is_absolute():
        raise ValueError(f"Mountpoint must be absolute: {text}")
    if ".." in mountpoint.parts:
        raise ValueError(f"Mountpoint must not contain '..': {text}")
    if any(char in text for char in _FORBIDDEN_CHARS):
        raise ValueError(f"Mountpoint contains invalid characters: {text}")
    return text


def mount_device(
    device: Optional[str],
    mountpoint: Path | str,
    fstype: Optional[str] = None,
) -> None:
    """Mount ``device`` on ``mountpoint``.

    Args:
        device: Block device path or ZFS dataset (``pool/name``)
        mountpoint: Absolute target directory, which must already exist
        fstype: Optional filesystem type passed with ``-t``

    Raises:
        MountFailedError: If the device is unknown, the mountpoint is
            invalid, or mount fails
    """
    mountpoint = Path(mountpoint)
    if not device:
        raise MountFailedError("<unresolved>", str(mountpoint), "device not resolved")
    try:
        target = _validate_mountpoint(mountpoint)
    except ValueError as error:
        raise MountFailedError(device, str(mountpoint), str(error)) from error

    command = ["mount"]
    if fstype:
        command.extend(["-t", fstype])
    command.extend([device, target])
    try:
        run_command(command)
    except CommandError as error:
        raise MountFailedError(device, target, str(error)) from error
    log.info(f"`{device}` mounted to `{target}`")


def unmount_device(device: Optional[str]) -> None:
    """Unmount ``device`` (block device path or ZFS dataset).

    Raises:
        UnmountFailedError: If the device is unknown or umount fails
    """
    if not device:
        raise UnmountFailedError("<unresolved>", "device not resolved")
    try:
        run_command(["umount", device])
    except CommandError as error:
        raise UnmountFailedError(device, str(error)) from error
    log.info(f"`{device}` unmounted")
