"""
Pytest configuration and shared fixtures for disk-layout tests.

The external storage tools are never run. The ``fake_tools`` fixture
replaces subprocess.run with a small simulation of the kernel state the
layout code relies on:

- sgdisk -n adds a partition to the disk's table and a by-id symlink
- fdisk -l lists the partitions created so far
- cryptsetup luksOpen/luksClose/status track active mappings
- zpool create/add/destroy/list track visible pools
"""

import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from disklayout.config import settings
from disklayout.domain.models import LayoutConfig
from disklayout.storage import resolver, settle


# ==============================================================================
# Fake external tools
# ==============================================================================


class FakeTools:
    """Records every command and answers like the real tools would."""

    def __init__(self, by_id_dir: Path):
        self.by_id_dir = by_id_dir
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.tables: Dict[str, int] = {}
        self.mappers: set = set()
        self.pools: List[str] = []
        self.failures: Dict[str, int] = {}

    # -- query helpers -------------------------------------------------

    def commands(self, *prefix: str) -> List[List[str]]:
        """Calls whose argv starts with ``prefix``."""
        return [call for call in self.calls if call[: len(prefix)] == list(prefix)]

    def index(self, *prefix: str) -> int:
        """Position of the first call starting with ``prefix``."""
        for position, call in enumerate(self.calls):
            if call[: len(prefix)] == list(prefix):
                return position
        raise AssertionError(f"{' '.join(prefix)} was never called")

    def fail(self, *prefix: str, returncode: int = 1) -> None:
        """Make every command starting with ``prefix`` exit non-zero."""
        self.failures[" ".join(prefix)] = returncode

    def reset_calls(self) -> None:
        self.calls.clear()
        self.inputs.clear()

    # -- simulation ----------------------------------------------------

    @staticmethod
    def partition_name(disk: str, number: int) -> str:
        separator = "p" if disk[-1].isdigit() else ""
        return f"{disk}{separator}{number}"

    def _sgdisk(self, argv: List[str]) -> str:
        disk = argv[-1]
        if "-Z" in argv:
            self.tables[disk] = 0
            return ""
        number = self.tables.get(disk, 0) + 1
        self.tables[disk] = number
        device = self.partition_name(disk, number)
        link = self.by_id_dir / f"ata-{os.path.basename(disk)}-part{number}"
        if not os.path.lexists(link):
            link.symlink_to(f"../../{os.path.basename(device)}")
        return ""

    def _fdisk(self, argv: List[str]) -> str:
        disk = argv[-1]
        lines = [f"Disk {disk}: 100 GiB, 107374182400 bytes", "", "Device  Start  End  Size Type"]
        for number in range(1, self.tables.get(disk, 0) + 1):
            lines.append(f"{self.partition_name(disk, number)}  2048  1050623  512M Linux")
        return "\n".join(lines) + "\n"

    def _cryptsetup(self, argv: List[str]):
        action = argv[1]
        if action == "status":
            label = os.path.basename(argv[2])
            if label in self.mappers:
                return 0, f"{argv[2]} is active.\n"
            return 4, f"{argv[2]} is inactive.\n"
        if action == "luksOpen":
            self.mappers.add(argv[3])
        elif action == "luksClose":
            self.mappers.discard(os.path.basename(argv[2]))
        return 0, ""

    def _zpool(self, argv: List[str]):
        action = argv[1]
        if action == "list":
            if argv[2:] == ["-H", "-o", "name"]:
                return 0, "".join(f"{pool}\n" for pool in self.pools)
            return (0, "") if argv[2] in self.pools else (1, "")
        if action == "create":
            self.pools.append(argv[-2])
        elif action == "destroy":
            self.pools.remove(argv[-1])
        return 0, ""

    def __call__(self, command, input=None, text=True, capture_output=True, **kwargs):
        argv = [str(part) for part in command]
        self.calls.append(argv)
        self.inputs.append(input)

        for prefix, returncode in self.failures.items():
            if " ".join(argv).startswith(prefix):
                return subprocess.CompletedProcess(argv, returncode, "", f"{argv[0]}: failed")

        returncode, stdout = 0, ""
        if argv[0] == "sgdisk":
            stdout = self._sgdisk(argv)
        elif argv[0] == "fdisk":
            stdout = self._fdisk(argv)
        elif argv[0] == "cryptsetup":
            returncode, stdout = self._cryptsetup(argv)
        elif argv[0] == "zpool":
            returncode, stdout = self._zpool(argv)
        return subprocess.CompletedProcess(argv, returncode, stdout, "")


@pytest.fixture(autouse=True)
def default_settings(monkeypatch, tmp_path):
    """Isolate every test from the user's settings file."""
    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    settings.load_settings()
    yield
    settings.load_settings()


@pytest.fixture
def no_sleep(mocker):
    """Make settle polling instantaneous."""
    return mocker.patch("disklayout.storage.settle.time.sleep")


@pytest.fixture
def fake_tools(tmp_path, monkeypatch, no_sleep) -> FakeTools:
    """Replace every external tool with the FakeTools simulation."""
    by_id_dir = tmp_path / "by-id"
    by_id_dir.mkdir()
    fake = FakeTools(by_id_dir)
    monkeypatch.setattr("disklayout.storage.commands.subprocess.run", fake)
    monkeypatch.setattr("disklayout.storage.gpt.shutil.which", lambda name: f"/usr/sbin/{name}")
    monkeypatch.setattr(resolver, "BY_ID_DIR", str(by_id_dir))
    monkeypatch.setattr(settle, "wait_for_path", lambda path, **kwargs: path)
    return fake


@pytest.fixture
def key_file(tmp_path) -> Path:
    path = tmp_path / "key_file"
    path.write_bytes(b"0123456789abcdef")
    return path


# ==============================================================================
# Layout documents
# ==============================================================================


@pytest.fixture
def plain_layout_data() -> Dict[str, Any]:
    """One disk: EFI partition then an ext4 root filling the disk."""
    return {
        "disks": [
            {
                "device": "/dev/sda",
                "read_only": False,
                "contains_system": True,
                "partitions": [
                    {
                        "id": 1,
                        "size": "512M",
                        "partition_type": "boot",
                        "fs_type": "fat32",
                        "label": "boot",
                    },
                    {
                        "id": 2,
                        "partition_type": "linux",
                        "fs_type": "ext4",
                        "label": "root",
                        "is_system": True,
                        "is_root": True,
                    },
                ],
            }
        ]
    }


@pytest.fixture
def encrypted_layout_data(plain_layout_data) -> Dict[str, Any]:
    plain_layout_data["disks"][0]["partitions"][1]["encrypted"] = True
    return plain_layout_data


@pytest.fixture
def lvm_layout_data() -> Dict[str, Any]:
    """Encrypted system partition holding a volume group with swap and root."""
    return {
        "disks": [
            {
                "device": "#MAIN",
                "contains_system": True,
                "partitions": [
                    {
                        "id": 2,
                        "partition_type": "linux",
                        "fs_type": "lvm",
                        "label": "system",
                        "encrypted": True,
                        "is_system": True,
                        "lvm": [
                            {"id": 2, "fs_type": "ext4", "label": "root", "is_root": True},
                            {"id": 1, "size": "8G", "fs_type": "swap", "label": "swap"},
                        ],
                    },
                    {
                        "id": 1,
                        "size": "1G",
                        "partition_type": "efi",
                        "fs_type": "fat32",
                        "label": "boot",
                    },
                ],
            }
        ]
    }


@pytest.fixture
def zfs_layout_data() -> Dict[str, Any]:
    """Two disks whose data partitions share the ``tank`` pool."""
    return {
        "disks": [
            {
                "device": "/dev/nvme0n1",
                "contains_system": True,
                "partitions": [
                    {
                        "id": 1,
                        "size": "512M",
                        "partition_type": "efi",
                        "fs_type": "fat32",
                        "label": "boot",
                    },
                    {
                        "id": 2,
                        "partition_type": "linux",
                        "fs_type": "zfs",
                        "label": "tank",
                        "is_system": True,
                        "zfs": [
                            {"name": "root", "mountpoint": "/", "is_root": True},
                            {"name": "home", "mountpoint": "/home"},
                        ],
                    },
                ],
            },
            {
                "device": "/dev/sdb",
                "partitions": [
                    {
                        "id": 1,
                        "partition_type": "linux",
                        "fs_type": "zfs",
                        "label": "tank",
                    }
                ],
            },
        ]
    }


@pytest.fixture
def plain_layout_config(plain_layout_data) -> LayoutConfig:
    return LayoutConfig.from_dict(plain_layout_data)
