"""GPT partition table operations (sgdisk).

Operations:
    - wipe_disk(): Destroy the partition table and protective MBR of a disk
    - create_partition(): Append one partition with size, type code and name
    - notify_kernel(): Ask the kernel/udev to re-read the table
"""

from __future__ import annotations

import shutil

from disklayout.domain.models import Bytesize, PartitionType
from disklayout.logging import LoggerFactory
from disklayout.storage.commands import run_command


log = LoggerFactory.for_layout()


def wipe_disk(device: str) -> None:
    """Zap all GPT and MBR data structures on ``device``."""
    run_command(["sgdisk", "-Z", device])
    log.info(f"`{device}` has been wiped out")


def create_partition(
    device: str,
    size: Bytesize,
    partition_type: PartitionType,
    label: str,
) -> None:
    """Create the next partition on ``device``.

    Partition number 0 and start sector 0 let sgdisk pick the next free
    slot, so partitions must be created in id order.
    """
    run_command(
        [
            "sgdisk",
            "-n", f"0:0:{size.to_gpt_string()}",
            "-t", f"0:{partition_type.gpt_code}",
            "-c", f"0:{label}",
            device,
        ]
    )
    log.info(f"Partition `{label}` has been created on `{device}`")
    notify_kernel(device)


def notify_kernel(device: str) -> None:
    """Best-effort partition table re-read; resolution polling does the waiting."""
    for cmd in (
        ["partprobe", device],
        ["udevadm", "settle", "--timeout=10"],
    ):
        if shutil.which(cmd[0]):
            run_command(cmd, check=False, log_output=False)
