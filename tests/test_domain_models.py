"""Tests for disklayout.domain.models - layout description parsing."""

import pytest

from disklayout.domain.models import (
    Bytesize,
    DiskConfig,
    FsType,
    LayoutConfig,
    PartitionConfig,
    PartitionType,
    PoolFilesystemConfig,
    VolumeConfig,
)
from disklayout.storage.exceptions import InvalidConfigurationError, InvalidValueError


class TestBytesize:
    """Tests for Bytesize parsing and formatting."""

    @pytest.mark.parametrize("text", [None, "", "0", "  0 "])
    def test_remaining_space(self, text):
        """Test that empty and zero sizes mean remaining space."""
        size = Bytesize.parse(text)
        assert size.is_null
        assert str(size) == "0"
        assert size.to_gpt_string() == "0"

    def test_parse_with_unit(self):
        """Test parsing a value with a unit suffix."""
        size = Bytesize.parse("512M")
        assert size == Bytesize(512, "M")
        assert str(size) == "512M"
        assert size.to_gpt_string() == "+512M"
        assert size.to_lvm_string() == "512M"

    def test_bytes_are_rounded_up_to_kib_for_sgdisk(self):
        """Test that byte sizes are not read as sectors by sgdisk."""
        assert Bytesize.parse("1500").to_gpt_string() == "+2K"
        assert Bytesize.parse("2048B").to_gpt_string() == "+2K"

    def test_lvm_bare_number_is_bytes(self):
        assert Bytesize.parse("4096").to_lvm_string() == "4096B"

    def test_text_round_trips(self):
        """Test that the unit the size was written with is preserved."""
        for text in ("1B", "10K", "8G", "2T", "1P", "300"):
            assert str(Bytesize.parse(text)) == text

    @pytest.mark.parametrize("text", ["12X", "-1G", "1.5G", "G", "ten"])
    def test_malformed_size_raises(self, text):
        """Test that malformed sizes raise InvalidValueError on the size field."""
        with pytest.raises(InvalidValueError) as excinfo:
            Bytesize.parse(text)
        assert excinfo.value.field == "size"
        assert isinstance(excinfo.value, InvalidConfigurationError)


class TestTags:
    """Tests for PartitionType and FsType tag decoding."""

    @pytest.mark.parametrize("tag", ["efi", "EF00", "boot"])
    def test_efi_aliases(self, tag):
        assert PartitionType.parse(tag) is PartitionType.EFI

    @pytest.mark.parametrize("tag", ["linux", "8300"])
    def test_linux_aliases(self, tag):
        assert PartitionType.parse(tag) is PartitionType.LINUX

    def test_gpt_codes(self):
        assert PartitionType.EFI.gpt_code == "ef00"
        assert PartitionType.LINUX.gpt_code == "8300"

    def test_unknown_partition_type(self):
        with pytest.raises(InvalidValueError) as excinfo:
            PartitionType.parse("msdos")
        assert excinfo.value.field == "partition_type"
        assert excinfo.value.value == "msdos"

    def test_fs_types(self):
        assert [FsType.parse(t) for t in ("ext4", "FAT32", "swap", "zfs", "lvm")] == [
            FsType.EXT4,
            FsType.FAT32,
            FsType.SWAP,
            FsType.ZFS,
            FsType.LVM,
        ]

    def test_unknown_fs_type(self):
        with pytest.raises(InvalidValueError) as excinfo:
            FsType.parse("btrfs")
        assert excinfo.value.field == "fs_type"


class TestPartitionConfig:
    """Tests for PartitionConfig serialization."""

    def test_from_dict_defaults(self):
        """Test that resolved fields start empty."""
        config = PartitionConfig.from_dict({"id": 1, "label": "boot"})
        assert config.size.is_null
        assert config.encrypted is False
        assert config.lvm == []
        assert config.zfs == []
        assert config.device is None
        assert config.device_by_id is None
        assert config.device_by_partlabel is None
        assert config.luks_mapper is None

    def test_nested_entries(self):
        config = PartitionConfig.from_dict(
            {
                "id": 2,
                "label": "system",
                "partition_type": "linux",
                "fs_type": "lvm",
                "lvm": [{"id": 1, "label": "root", "fs_type": "ext4", "size": "20G"}],
                "zfs": [{"name": "nix", "mountpoint": "/nix"}],
            }
        )
        assert config.lvm == [VolumeConfig(id=1, label="root", fs_type="ext4", size=Bytesize(20, "G"))]
        assert config.zfs == [PoolFilesystemConfig(name="nix", mountpoint="/nix")]
        assert config.kind is PartitionType.LINUX
        assert config.filesystem is FsType.LVM

    def test_resolved_fields_round_trip(self):
        data = {
            "id": 2,
            "size": "0",
            "partition_type": "linux",
            "encrypted": True,
            "fs_type": "ext4",
            "label": "root",
            "is_system": True,
            "is_root": True,
            "lvm": [],
            "zfs": [],
            "device": "/dev/sda2",
            "device_by_id": "/dev/disk/by-id/ata-X-part2",
            "device_by_partlabel": "/dev/disk/by-partlabel/root",
            "luks_mapper": "/dev/mapper/root",
        }
        assert PartitionConfig.from_dict(data).to_dict() == data


class TestLayoutConfig:
    """Tests for LayoutConfig parsing."""

    def test_from_object(self, plain_layout_data):
        config = LayoutConfig.from_dict(plain_layout_data)
        assert len(config.disks) == 1
        assert config.disks[0].device == "/dev/sda"
        assert [p.label for p in config.disks[0].partitions] == ["boot", "root"]

    def test_from_bare_list(self, plain_layout_data):
        """Test that a bare array of disks is accepted."""
        config = LayoutConfig.from_dict(plain_layout_data["disks"])
        assert config.disks[0].contains_system is True

    def test_round_trip(self, lvm_layout_data):
        config = LayoutConfig.from_dict(lvm_layout_data)
        reloaded = LayoutConfig.from_dict(config.to_dict())
        assert reloaded == config

    def test_placeholder(self):
        assert DiskConfig(device="#MAIN").placeholder == "MAIN"
        assert DiskConfig(device="/dev/sda").placeholder is None


class TestMalformedDocument:
    """Tests that malformed values are reported with their field path."""

    def test_non_integer_id(self, plain_layout_data):
        plain_layout_data["disks"][0]["partitions"][1]["id"] = "one"

        with pytest.raises(InvalidValueError) as excinfo:
            LayoutConfig.from_dict(plain_layout_data)

        assert excinfo.value.field == "disks[0].partitions[1].id"
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_boolean_id(self):
        with pytest.raises(InvalidValueError):
            PartitionConfig.from_dict({"id": True, "label": "boot"})

    def test_partition_entry_not_an_object(self, plain_layout_data):
        plain_layout_data["disks"][0]["partitions"] = ["boot"]

        with pytest.raises(InvalidConfigurationError) as excinfo:
            LayoutConfig.from_dict(plain_layout_data)

        assert excinfo.value.field == "disks[0].partitions[0]"
        assert "expected an object" in str(excinfo.value)

    def test_disk_entry_not_an_object(self):
        with pytest.raises(InvalidConfigurationError) as excinfo:
            LayoutConfig.from_dict({"disks": [["/dev/sda"]]})
        assert excinfo.value.field == "disks[0]"

    def test_partitions_not_a_list(self):
        with pytest.raises(InvalidConfigurationError) as excinfo:
            DiskConfig.from_dict({"device": "/dev/sda", "partitions": {"id": 1}})
        assert excinfo.value.field == "partitions"

    def test_bad_volume_size_has_nested_path(self, lvm_layout_data):
        lvm_layout_data["disks"][0]["partitions"][0]["lvm"][1]["size"] = "8 gigs"

        with pytest.raises(InvalidValueError) as excinfo:
            LayoutConfig.from_dict(lvm_layout_data)

        assert excinfo.value.field == "disks[0].partitions[0].lvm[1].size"
        assert excinfo.value.value == "8 gigs"

    def test_non_string_device(self):
        with pytest.raises(InvalidValueError) as excinfo:
            DiskConfig.from_dict({"device": 42})
        assert excinfo.value.field == "device"

    def test_pool_filesystem_not_an_object(self):
        with pytest.raises(InvalidConfigurationError) as excinfo:
            PartitionConfig.from_dict({"id": 1, "label": "tank", "zfs": ["root"]})
        assert excinfo.value.field == "zfs[0]"

    def test_scalar_layout(self):
        with pytest.raises(InvalidConfigurationError):
            LayoutConfig.from_dict("disks")
