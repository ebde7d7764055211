"""Structural validation of a layout description.

Each entity type has its own stateless validation function and the
functions compose bottom-up (volume → partition → disk → layout). They only
look at one entity at a time: cross-entity rules such as "exactly one
root" are enforced by the role locator when it is asked to find a node.

All validation functions raise InvalidConfigurationError rather than
returning boolean values, making error handling more explicit.

Example:
    from disklayout.storage.validation import validate_layout_config

    validate_layout_config(config)  # raises on the first invalid field
"""

from disklayout.domain.models import (
    DiskConfig,
    FsType,
    LayoutConfig,
    PartitionConfig,
    PartitionType,
    PoolFilesystemConfig,
    VolumeConfig,
)

from .exceptions import InvalidConfigurationError, InvalidValueError


def _where(prefix: str, field: str) -> str:
    return f"{prefix}.{field}" if prefix else field


def validate_volume_config(volume: VolumeConfig, prefix: str = "") -> None:
    """Validate a logical volume description.

    Raises:
        InvalidConfigurationError: If the label is empty or a tag is unknown
    """
    if not volume.label:
        raise InvalidConfigurationError(_where(prefix, "label"), "empty")
    try:
        FsType.parse(volume.fs_type)
        PartitionType.parse(volume.volume_type)
    except InvalidValueError as error:
        raise InvalidValueError(_where(prefix, error.field), error.value) from None


def validate_pool_filesystem_config(filesystem: PoolFilesystemConfig, prefix: str = "") -> None:
    """Validate a pooled filesystem description."""
    if not filesystem.name:
        raise InvalidConfigurationError(_where(prefix, "name"), "empty")


def validate_partition_config(partition: PartitionConfig, prefix: str = "") -> None:
    """Validate a partition description and its nested volumes/filesystems.

    A partition needs a non-zero id, parseable partition and filesystem
    tags, and a non-empty label.

    Raises:
        InvalidConfigurationError: On the first invalid field
    """
    if partition.id <= 0:
        raise InvalidConfigurationError(_where(prefix, "id"), "must be a positive integer")
    try:
        PartitionType.parse(partition.partition_type)
        FsType.parse(partition.fs_type)
    except InvalidValueError as error:
        raise InvalidValueError(_where(prefix, error.field), error.value) from None
    if not partition.label:
        raise InvalidConfigurationError(_where(prefix, "label"), "empty")

    for index, volume in enumerate(partition.lvm):
        validate_volume_config(volume, _where(prefix, f"lvm[{index}]"))
    for index, filesystem in enumerate(partition.zfs):
        validate_pool_filesystem_config(filesystem, _where(prefix, f"zfs[{index}]"))


def validate_disk_config(disk: DiskConfig, prefix: str = "") -> None:
    """Validate a disk description: non-empty device and valid partitions."""
    if not disk.device:
        raise InvalidConfigurationError(_where(prefix, "device"), "empty")
    for index, partition in enumerate(disk.partitions):
        validate_partition_config(partition, _where(prefix, f"partitions[{index}]"))


def validate_layout_config(layout: LayoutConfig) -> None:
    """Validate every disk of a layout description."""
    for index, disk in enumerate(layout.disks):
        validate_disk_config(disk, f"disks[{index}]")


def is_valid_layout_config(layout: LayoutConfig) -> bool:
    """Boolean convenience wrapper around validate_layout_config()."""
    try:
        validate_layout_config(layout)
    except InvalidConfigurationError:
        return False
    return True
