"""ZFS pools and pooled filesystems.

Pools are named after the label of the partition that seeds them. A second
partition with the same label extends the existing pool with a plain
(non-redundant) vdev instead of creating a new one.

Pools are opened and closed for the whole layout at once (``zpool import
-a`` / ``zpool export -a``), never per partition.

Example:
    >>> from disklayout.storage import zfs
    >>> zfs.pool_create("tank", "/dev/disk/by-id/ata-X-part2")
    >>> zfs.PoolFilesystem(PoolFilesystemConfig("nix", "/nix"), "tank").create()
"""

from __future__ import annotations

from pathlib import Path

from disklayout.domain.models import PoolFilesystemConfig
from disklayout.logging import LoggerFactory
from disklayout.storage.commands import command_output, command_succeeds, run_command
from disklayout.storage.exceptions import PoolError
from disklayout.storage.mount import mount_device, unmount_device


log = LoggerFactory.for_zfs()

POOL_CREATE_OPTIONS = ["-o", "ashift=12", "-O", "compression=lz4", "-m", "none"]


def pool_import_all() -> None:
    run_command(["zpool", "import", "-a"])
    log.debug("All pools imported")


def pool_export_all() -> None:
    run_command(["zpool", "export", "-a"])
    log.debug("All pools exported")


def pool_exists(name: str) -> bool:
    return command_succeeds(["zpool", "list", name])


def list_pools() -> list[str]:
    output = command_output(["zpool", "list", "-H", "-o", "name"])
    return [line.strip() for line in output.splitlines() if line.strip()]


def pool_create(name: str, device: str) -> None:
    """Create pool ``name`` on ``device`` or add ``device`` to it.

    Importable pools are imported first so that a pool already built from
    an earlier partition of the same layout is detected. When none exists,
    everything is exported again before creating a fresh pool, so an
    imported pool cannot collide with the new name.
    """
    if not device:
        raise PoolError(f"No device to add to pool `{name}`")
    pool_import_all()
    if pool_exists(name):
        run_command(["zpool", "add", "-f", name, device])
        log.info(f"`{device}` added to pool `{name}`")
        return
    pool_export_all()
    run_command(["zpool", "create", *POOL_CREATE_OPTIONS, name, device])
    log.info(f"Pool `{name}` created on `{device}`")


def pool_destroy(name: str) -> None:
    run_command(["zpool", "destroy", "-f", name])
    log.info(f"Pool `{name}` destroyed")


def wipeout() -> None:
    """Destroy every currently visible pool."""
    for name in list_pools():
        pool_destroy(name)


class PoolFilesystem:
    """A dataset ``<pool>/<name>`` with a legacy mountpoint; Mountable."""

    def __init__(self, config: PoolFilesystemConfig, pool: str):
        self.config = config
        self.pool = pool
        self._mounted = False

    @property
    def dataset(self) -> str:
        return f"{self.pool}/{self.config.name}"

    @property
    def is_root(self) -> bool:
        return self.config.is_root

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def mount_source(self) -> str:
        return self.dataset

    def create(self) -> None:
        run_command(["zfs", "create", self.dataset, "-o", "mountpoint=legacy"])
        log.info(f"Filesystem `{self.dataset}` created")

    def mount(self, mountpoint: str | Path) -> None:
        if self._mounted:
            return
        mount_device(self.dataset, mountpoint, fstype="zfs")
        self._mounted = True

    def unmount(self) -> None:
        if not self._mounted:
            return
        unmount_device(self.dataset)
        self._mounted = False

    def __repr__(self) -> str:
        return f"PoolFilesystem({self.dataset!r})"
