"""Capability contracts of the layered device tree.

Nodes do not share a base class. Each concrete node type implements the
capabilities it has, and callers (the role locator, the install actions)
only depend on these protocols.

    Activatable: Partition, VolumeGroup
    Mountable:   Partition, LogicalVolume, PoolFilesystem
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Activatable(Protocol):
    """A node that must be opened before its contents are reachable."""

    @property
    def is_opened(self) -> bool: ...

    def open(self, passphrase: Optional[str] = None) -> None:
        """Bring the node online. Must be a no-op when already open."""
        ...

    def close(self) -> None:
        """Take the node offline. Must be a no-op when already closed."""
        ...


@runtime_checkable
class Mountable(Protocol):
    """A node holding a filesystem that can be attached to a directory."""

    @property
    def is_mounted(self) -> bool: ...

    @property
    def mount_source(self) -> Optional[str]:
        """Stable device (or dataset) passed to mount."""
        ...

    def mount(self, mountpoint: str) -> None: ...

    def unmount(self) -> None: ...
