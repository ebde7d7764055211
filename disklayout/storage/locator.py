"""Role lookup in the device tree.

The root filesystem and the EFI boot target can live on a raw partition, a
logical volume or (root only) a pooled filesystem. The searches walk the
whole disk depth first and return the matching node through the Mountable
contract, so callers never need to know which technology hosts it.

Layout validation does not check that roles are unique, so the full tree is
always scanned and a second match is rejected instead of being shadowed by
the first.
"""

from __future__ import annotations

from typing import Callable, Iterator

from disklayout.domain.models import PartitionType
from disklayout.logging import LoggerFactory
from disklayout.storage.contracts import Mountable
from disklayout.storage.disk import Disk
from disklayout.storage.exceptions import AmbiguousRoleError, LayoutError, RoleNotFoundError
from disklayout.storage.layout import Layout


log = LoggerFactory.for_layout()


def find_system_disk(layout: Layout) -> Disk:
    """Return the disk flagged ``contains_system``.

    Raises:
        LayoutError: If no disk is flagged
        AmbiguousRoleError: If several disks are flagged
    """
    matches = [disk for disk in layout.disks if disk.contains_system]
    if not matches:
        raise LayoutError("System disk not found")
    if len(matches) > 1:
        raise AmbiguousRoleError("contains_system", [d.device for d in matches])
    return matches[0]


def _walk(
    disk: Disk,
    matches: Callable[[object], bool],
    *,
    include_pool: bool,
) -> Iterator[Mountable]:
    for partition in disk.partitions:
        if matches(partition):
            yield partition
            continue
        if not partition.is_system:
            continue
        for volume in partition.logical_volumes:
            if matches(volume):
                yield volume
        if include_pool:
            for filesystem in partition.filesystems:
                if matches(filesystem):
                    yield filesystem


def _single(role: str, found: list[Mountable], not_found: str) -> Mountable:
    if not found:
        raise RoleNotFoundError(not_found)
    if len(found) > 1:
        raise AmbiguousRoleError(role, [repr(node) for node in found])
    log.debug(f"{role} found: {found[0]!r}")
    return found[0]


def find_root(disk: Disk) -> Mountable:
    """Return the node flagged ``is_root``.

    Raises:
        RoleNotFoundError: "Root partition not found"
        AmbiguousRoleError: If several nodes are flagged root
    """
    found = list(_walk(disk, lambda node: node.is_root, include_pool=True))
    return _single("is_root", found, "Root partition not found")


def _is_efi(node: object) -> bool:
    return node.kind is PartitionType.EFI


def find_efi(disk: Disk) -> Mountable:
    """Return the EFI boot target: a partition or a logical volume.

    Raises:
        RoleNotFoundError: "EFI partition not found"
        AmbiguousRoleError: If several nodes have the EFI type
    """
    found = list(_walk(disk, _is_efi, include_pool=False))
    return _single("efi", found, "EFI partition not found")
