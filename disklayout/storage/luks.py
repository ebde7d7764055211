"""LUKS block-device encryption (cryptsetup).

The passphrase is always written to cryptsetup's stdin (key file ``-``), it
never appears on a command line or in the logs. The open state of a mapping
is queried from device-mapper instead of being tracked in memory, because a
previous invocation of the tool may have left it open.
"""

from __future__ import annotations

import os

from disklayout.logging import LoggerFactory
from disklayout.storage.commands import run_command
from disklayout.storage.exceptions import EncryptionError


log = LoggerFactory.for_luks()

MAPPER_DIR = "/dev/mapper"

CIPHER = "aes-xts-plain64"
KEY_SIZE = "256"
HASH = "sha512"
LUKS_TYPE = "luks1"


def mapper_path(label: str) -> str:
    return os.path.join(MAPPER_DIR, label)


def format_device(device: str, passphrase: str) -> None:
    """Initialize a LUKS header on ``device`` protected by ``passphrase``."""
    if not passphrase:
        raise EncryptionError(f"Empty passphrase for `{device}`")
    run_command(
        [
            "cryptsetup", "luksFormat",
            "-c", CIPHER,
            "-s", KEY_SIZE,
            "-h", HASH,
            "--type", LUKS_TYPE,
            "-q", device, "-",
        ],
        input_text=passphrase,
        secret_input=True,
    )
    log.info(f"`{device}` has been encrypted")


def add_key(device: str, key_file: str, passphrase: str) -> None:
    """Add ``key_file`` as a second credential, authorized with ``passphrase``."""
    if not os.path.exists(key_file):
        raise EncryptionError(f"Key file `{key_file}` does not exist")
    run_command(
        ["cryptsetup", "luksAddKey", device, key_file, "-"],
        input_text=passphrase,
        secret_input=True,
    )
    log.info(f"Key file `{key_file}` added to `{device}`")


def is_open(label: str) -> bool:
    """Ask device-mapper whether the mapping ``label`` is active."""
    # exits non-zero for inactive mappings
    result = run_command(
        ["cryptsetup", "status", mapper_path(label)], check=False, log_output=False
    )
    return result.returncode == 0 and "is active" in (result.stdout or "")


def open_device(device: str, label: str, passphrase: str) -> str:
    """Open ``device`` as ``/dev/mapper/<label>`` unless already active.

    Returns:
        The mapper path
    """
    path = mapper_path(label)
    if is_open(label):
        log.debug(f"`{path}` is already open")
        return path
    run_command(
        ["cryptsetup", "luksOpen", device, label, "-"],
        input_text=passphrase,
        secret_input=True,
    )
    log.info(f"`{device}` opened as `{path}`")
    return path


def close_device(label: str) -> None:
    path = mapper_path(label)
    if not is_open(label):
        log.debug(f"`{path}` is already closed")
        return
    run_command(["cryptsetup", "luksClose", path])
    log.info(f"`{path}` has been closed")
