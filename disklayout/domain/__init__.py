"""Domain models describing a storage layout.

This package contains the declarative, serializable layout description that
the runtime device tree is built from.
"""

from __future__ import annotations

from .models import (
    Bytesize,
    DiskConfig,
    FsType,
    LayoutConfig,
    PartitionConfig,
    PartitionType,
    PoolFilesystemConfig,
    VolumeConfig,
)


__all__ = [
    "Bytesize",
    "DiskConfig",
    "FsType",
    "LayoutConfig",
    "PartitionConfig",
    "PartitionType",
    "PoolFilesystemConfig",
    "VolumeConfig",
]
