"""Device identity resolution for freshly created partitions.

sgdisk reports success but not the kernel name of the partition it just
created. Resolution therefore happens in three steps:

1. Read the disk's partition table (``fdisk -l``) and match the disk path
   followed by the partition ordinal, e.g. ``/dev/sda2`` or
   ``/dev/nvme0n1p2``. This is the transient kernel device.
2. Scan the ``/dev/disk/by-id`` symlinks and keep the first entry (sorted by
   name) whose target ends with the transient device's base name.
3. Synthesize ``/dev/disk/by-partlabel/<label>`` from the partition label.

Steps 1 and 2 race against udev, so resolve_partition() re-runs them through
settle.poll() until both succeed.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

from disklayout.logging import LoggerFactory
from disklayout.storage import settle
from disklayout.storage.commands import command_output
from disklayout.storage.exceptions import (
    DeviceResolutionError,
    FilesystemIOError,
    SettleTimeoutError,
)


log = LoggerFactory.for_layout()

BY_ID_DIR = "/dev/disk/by-id"
BY_PARTLABEL_DIR = "/dev/disk/by-partlabel"


@dataclass(frozen=True)
class ResolvedPartition:
    """Identities of one partition, as recorded in its config."""

    device: str
    device_by_id: str
    device_by_partlabel: str


def find_partition_device(disk: str, partition_id: int) -> str:
    """Return the transient kernel path of partition ``partition_id`` of ``disk``.

    Raises:
        DeviceResolutionError: If the partition does not appear in the table yet
    """
    table = command_output(["fdisk", "-l", disk], log_output=False)
    pattern = re.compile(rf"({re.escape(disk)}p?{partition_id})\b")
    match = pattern.search(table)
    if match is None:
        raise DeviceResolutionError(
            f"{disk} partition {partition_id}", "not listed in the partition table"
        )
    return match.group(1)


def find_device_by_id(device: str) -> str:
    """Return the ``/dev/disk/by-id`` path whose link points at ``device``.

    Raises:
        DeviceResolutionError: If no by-id symlink targets the device
        FilesystemIOError: If the by-id directory cannot be read
    """
    device_name = os.path.basename(device)
    try:
        entries = sorted(os.listdir(BY_ID_DIR))
    except FileNotFoundError:
        entries = []
    except OSError as error:
        raise FilesystemIOError(BY_ID_DIR, str(error)) from error

    for entry in entries:
        path = os.path.join(BY_ID_DIR, entry)
        try:
            target = os.readlink(path)
        except OSError:
            # not a symlink
            continue
        if os.path.basename(target) == device_name:
            return path
    raise DeviceResolutionError(device, f"no symlink in {BY_ID_DIR}")


def partlabel_path(label: str) -> str:
    return os.path.join(BY_PARTLABEL_DIR, label)


def resolve_partition(
    disk: str,
    partition_id: int,
    label: str,
    *,
    timeout: Optional[float] = None,
) -> ResolvedPartition:
    """Resolve every identity of a just-created partition.

    Raises:
        SettleTimeoutError: If the device namespace does not catch up in
            time; the last DeviceResolutionError is chained as the cause
    """
    last_error: list[DeviceResolutionError] = []

    def lookup() -> Optional[ResolvedPartition]:
        try:
            device = find_partition_device(disk, partition_id)
            by_id = find_device_by_id(device)
        except DeviceResolutionError as error:
            last_error[:] = [error]
            return None
        return ResolvedPartition(device, by_id, partlabel_path(label))

    try:
        resolved = settle.poll(lookup, f"partition {partition_id} of {disk}", timeout=timeout)
    except SettleTimeoutError as error:
        if last_error:
            raise error from last_error[0]
        raise
    log.debug(
        f"Partition {partition_id} of {disk} resolved to {resolved.device} "
        f"({resolved.device_by_id})"
    )
    return resolved
