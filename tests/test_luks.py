"""Tests for disklayout.storage.luks - cryptsetup wrapper."""

import pytest

from disklayout.storage import luks
from disklayout.storage.exceptions import CommandFailedError, EncryptionError


DEVICE = "/dev/disk/by-id/ata-Disk-part2"


class TestFormatAndKeys:
    """Tests for format_device() and add_key()."""

    def test_format_passes_passphrase_on_stdin(self, fake_tools):
        luks.format_device(DEVICE, "secret")

        assert fake_tools.calls == [
            [
                "cryptsetup", "luksFormat",
                "-c", "aes-xts-plain64",
                "-s", "256",
                "-h", "sha512",
                "--type", "luks1",
                "-q", DEVICE, "-",
            ]
        ]
        assert fake_tools.inputs == ["secret"]

    def test_format_requires_passphrase(self, fake_tools):
        with pytest.raises(EncryptionError):
            luks.format_device(DEVICE, "")
        assert fake_tools.calls == []

    def test_add_key(self, fake_tools, key_file):
        luks.add_key(DEVICE, str(key_file), "secret")

        assert fake_tools.calls == [["cryptsetup", "luksAddKey", DEVICE, str(key_file), "-"]]
        assert fake_tools.inputs == ["secret"]

    def test_add_missing_key_file(self, fake_tools, tmp_path):
        with pytest.raises(EncryptionError, match="does not exist"):
            luks.add_key(DEVICE, str(tmp_path / "nope"), "secret")


class TestOpenClose:
    """Tests for open_device(), close_device() and is_open()."""

    def test_open_inactive_mapping(self, fake_tools):
        path = luks.open_device(DEVICE, "root", "secret")

        assert path == "/dev/mapper/root"
        assert fake_tools.calls == [
            ["cryptsetup", "status", "/dev/mapper/root"],
            ["cryptsetup", "luksOpen", DEVICE, "root", "-"],
        ]
        assert fake_tools.inputs[-1] == "secret"

    def test_open_already_active_mapping(self, fake_tools):
        """Test that device-mapper state wins over in-memory state."""
        fake_tools.mappers.add("root")

        luks.open_device(DEVICE, "root", "secret")

        assert fake_tools.commands("cryptsetup", "luksOpen") == []

    def test_is_open(self, fake_tools):
        assert luks.is_open("root") is False
        fake_tools.mappers.add("root")
        assert luks.is_open("root") is True

    def test_close_active_mapping(self, fake_tools):
        fake_tools.mappers.add("root")

        luks.close_device("root")

        assert fake_tools.commands("cryptsetup", "luksClose") == [
            ["cryptsetup", "luksClose", "/dev/mapper/root"]
        ]
        assert "root" not in fake_tools.mappers

    def test_close_inactive_mapping_is_noop(self, fake_tools):
        luks.close_device("root")
        assert fake_tools.commands("cryptsetup", "luksClose") == []

    def test_wrong_passphrase_propagates(self, fake_tools):
        fake_tools.fail("cryptsetup luksOpen", returncode=2)

        with pytest.raises(CommandFailedError) as excinfo:
            luks.open_device(DEVICE, "root", "wrong")

        assert excinfo.value.returncode == 2
        assert "wrong" not in str(excinfo.value)
