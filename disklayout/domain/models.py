"""Declarative layout description.

These dataclasses mirror the persisted layout JSON document one-to-one.
They carry no behavior beyond parsing, serialization and tag decoding;
the runtime device tree in disklayout.storage is built from them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from disklayout.storage.exceptions import InvalidConfigurationError, InvalidValueError


# ==============================================================================
# Sizes
# ==============================================================================

_BYTESIZE_PATTERN = re.compile(r"^([0-9]+)([BKMGTP]?)$")


@dataclass(frozen=True)
class Bytesize:
    """A requested size such as "512M" or "2G".

    A zero value means "use the remaining space".
    """

    value: int = 0
    unit: str = ""  # "", "B", "K", "M", "G", "T" or "P"

    @classmethod
    def parse(cls, text: Optional[str]) -> Bytesize:
        """Parse a size string; None or "" mean remaining space.

        Raises:
            InvalidValueError: If the string is not an integer with an optional unit
        """
        if text is None:
            return cls()
        text = str(text).strip()
        if not text:
            return cls()
        match = _BYTESIZE_PATTERN.match(text)
        if not match:
            raise InvalidValueError("size", text)
        value = int(match.group(1))
        if value == 0:
            return cls()
        return cls(value=value, unit=match.group(2))

    @property
    def is_null(self) -> bool:
        return self.value == 0

    def to_gpt_string(self) -> str:
        """Size argument for sgdisk's --new end sector ("0" = end of disk)."""
        if self.is_null:
            return "0"
        # sgdisk reads a bare number as sectors, so plain bytes are rounded up to KiB
        if self.unit in ("", "B"):
            return f"+{-(-self.value // 1024)}K"
        return f"+{self.value}{self.unit}"

    def to_lvm_string(self) -> str:
        """Size argument for lvcreate -L (bare numbers are bytes)."""
        return f"{self.value}{self.unit or 'B'}"

    def __str__(self) -> str:
        if self.is_null:
            return "0"
        return f"{self.value}{self.unit}"


# ==============================================================================
# Tags
# ==============================================================================


class PartitionType(Enum):
    """GPT partition type of a partition or logical volume."""

    EFI = "efi"
    LINUX = "linux"

    @classmethod
    def parse(cls, tag: str) -> PartitionType:
        aliases = {
            "efi": cls.EFI,
            "ef00": cls.EFI,
            "boot": cls.EFI,
            "linux": cls.LINUX,
            "8300": cls.LINUX,
        }
        try:
            return aliases[str(tag).lower()]
        except KeyError:
            raise InvalidValueError("partition_type", tag) from None

    @property
    def gpt_code(self) -> str:
        return {PartitionType.EFI: "ef00", PartitionType.LINUX: "8300"}[self]


class FsType(Enum):
    """Filesystem (or container) a partition or volume is formatted with."""

    EXT4 = "ext4"
    FAT32 = "fat32"
    SWAP = "swap"
    ZFS = "zfs"
    LVM = "lvm"

    @classmethod
    def parse(cls, tag: str) -> FsType:
        try:
            return cls(str(tag).lower())
        except ValueError:
            raise InvalidValueError("fs_type", tag) from None


# ==============================================================================
# Layout description
# ==============================================================================


def _path(prefix: str, field: str) -> str:
    return f"{prefix}.{field}" if prefix else field


def _mapping(data: Any, where: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidConfigurationError(
            where or "layout", f"expected an object, got {type(data).__name__}"
        )
    return data


def _integer(data: dict[str, Any], key: str, where: str) -> int:
    value = data.get(key, 0)
    if isinstance(value, bool):
        raise InvalidValueError(_path(where, key), value)
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise InvalidValueError(_path(where, key), value) from error


def _text(data: dict[str, Any], key: str, where: str, default: Optional[str] = "") -> Optional[str]:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidValueError(_path(where, key), value)
    return value


def _size(data: dict[str, Any], where: str) -> Bytesize:
    try:
        return Bytesize.parse(data.get("size"))
    except InvalidValueError as error:
        raise InvalidValueError(_path(where, "size"), error.value) from error


def _entries(data: dict[str, Any], key: str, where: str) -> list[tuple[str, Any]]:
    """Items of the list ``key`` paired with their field path."""
    value = data.get(key) or []
    if not isinstance(value, list):
        raise InvalidConfigurationError(_path(where, key), "expected a list")
    return [(f"{_path(where, key)}[{index}]", item) for index, item in enumerate(value)]


@dataclass
class PoolFilesystemConfig:
    """A named ZFS filesystem inside the pool of its parent partition."""

    name: str
    mountpoint: str = ""
    is_root: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "") -> PoolFilesystemConfig:
        data = _mapping(data, where)
        return cls(
            name=_text(data, "name", where),
            mountpoint=_text(data, "mountpoint", where),
            is_root=bool(data.get("is_root", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "mountpoint": self.mountpoint, "is_root": self.is_root}


@dataclass
class VolumeConfig:
    """An LVM logical volume carved from the volume group of its partition."""

    id: int
    label: str
    fs_type: str = "ext4"
    size: Bytesize = field(default_factory=Bytesize)
    volume_type: str = "linux"
    is_root: bool = False
    device: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "") -> VolumeConfig:
        data = _mapping(data, where)
        return cls(
            id=_integer(data, "id", where),
            label=_text(data, "label", where),
            fs_type=_text(data, "fs_type", where),
            size=_size(data, where),
            volume_type=_text(data, "volume_type", where, "linux"),
            is_root=bool(data.get("is_root", False)),
            device=_text(data, "device", where, None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "size": str(self.size),
            "volume_type": self.volume_type,
            "fs_type": self.fs_type,
            "label": self.label,
            "is_root": self.is_root,
            "device": self.device,
        }


@dataclass
class PartitionConfig:
    """One GPT partition and everything layered on top of it."""

    id: int
    label: str
    partition_type: str = "linux"
    fs_type: str = "ext4"
    size: Bytesize = field(default_factory=Bytesize)
    encrypted: bool = False
    is_system: bool = False
    is_root: bool = False
    lvm: list[VolumeConfig] = field(default_factory=list)
    zfs: list[PoolFilesystemConfig] = field(default_factory=list)
    # Resolved during creation
    device: Optional[str] = None
    device_by_id: Optional[str] = None
    device_by_partlabel: Optional[str] = None
    luks_mapper: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "") -> PartitionConfig:
        """Build a partition from its JSON object.

        Raises:
            InvalidConfigurationError: If an entry is not an object or a
                value has the wrong type; the field path is reported
        """
        data = _mapping(data, where)
        return cls(
            id=_integer(data, "id", where),
            label=_text(data, "label", where),
            partition_type=_text(data, "partition_type", where),
            fs_type=_text(data, "fs_type", where),
            size=_size(data, where),
            encrypted=bool(data.get("encrypted", False)),
            is_system=bool(data.get("is_system", False)),
            is_root=bool(data.get("is_root", False)),
            lvm=[VolumeConfig.from_dict(v, path) for path, v in _entries(data, "lvm", where)],
            zfs=[
                PoolFilesystemConfig.from_dict(z, path)
                for path, z in _entries(data, "zfs", where)
            ],
            device=_text(data, "device", where, None),
            device_by_id=_text(data, "device_by_id", where, None),
            device_by_partlabel=_text(data, "device_by_partlabel", where, None),
            luks_mapper=_text(data, "luks_mapper", where, None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "size": str(self.size),
            "partition_type": self.partition_type,
            "encrypted": self.encrypted,
            "fs_type": self.fs_type,
            "label": self.label,
            "is_system": self.is_system,
            "is_root": self.is_root,
            "lvm": [v.to_dict() for v in self.lvm],
            "zfs": [z.to_dict() for z in self.zfs],
            "device": self.device,
            "device_by_id": self.device_by_id,
            "device_by_partlabel": self.device_by_partlabel,
            "luks_mapper": self.luks_mapper,
        }

    @property
    def kind(self) -> PartitionType:
        return PartitionType.parse(self.partition_type)

    @property
    def filesystem(self) -> FsType:
        return FsType.parse(self.fs_type)


@dataclass
class DiskConfig:
    """A physical disk; ``device`` may be a ``#NAME`` placeholder."""

    device: str
    read_only: bool = False
    contains_system: bool = False
    partitions: list[PartitionConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "") -> DiskConfig:
        data = _mapping(data, where)
        return cls(
            device=_text(data, "device", where),
            read_only=bool(data.get("read_only", False)),
            contains_system=bool(data.get("contains_system", False)),
            partitions=[
                PartitionConfig.from_dict(p, path)
                for path, p in _entries(data, "partitions", where)
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "device": self.device,
            "read_only": self.read_only,
            "contains_system": self.contains_system,
            "partitions": [p.to_dict() for p in self.partitions],
        }

    @property
    def placeholder(self) -> Optional[str]:
        """Mapping key when the device is a ``#NAME`` placeholder."""
        if self.device.startswith("#"):
            return self.device[1:]
        return None


@dataclass
class LayoutConfig:
    """The whole machine: an ordered list of disks."""

    disks: list[DiskConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | list[Any]) -> LayoutConfig:
        if isinstance(data, list):
            data = {"disks": data}
        data = _mapping(data, "layout")
        return cls(disks=[DiskConfig.from_dict(d, path) for path, d in _entries(data, "disks", "")])

    def to_dict(self) -> dict[str, Any]:
        return {"disks": [d.to_dict() for d in self.disks]}
