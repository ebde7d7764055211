"""Install the disk key file into the root filesystem.

The initrd unlocks the encrypted disks with this file, so it is copied to
``<root>/<secrets_dir>/<key_filename>`` with all permissions removed.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from disklayout.config import settings
from disklayout.logging import LoggerFactory, operation_context
from disklayout.storage import locator
from disklayout.storage.commands import run_command
from disklayout.storage.exceptions import FilesystemIOError
from disklayout.storage.layout import Layout


log = LoggerFactory.for_system()


def copy_key_file(key_file: Path, root_dir: Path, key_filename: str) -> Path:
    secrets_dir = root_dir / settings.get_setting("secrets_dir", "etc/secrets/disks")
    destination = secrets_dir / key_filename
    try:
        secrets_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(key_file, destination)
    except OSError as error:
        raise FilesystemIOError(destination, error.strerror or str(error)) from error
    run_command(["chmod", "000", str(destination)])
    log.info(f"`{key_file}` installed to `{destination}`")
    return destination


def install_key_file(
    layout: Layout,
    passphrase: Optional[str],
    key_file: Optional[str] = None,
    key_filename: Optional[str] = None,
    *,
    mount_root: Optional[str] = None,
) -> Path:
    """Open ``layout``, mount its root and drop the key file in it.

    Returns:
        Path of the installed key file, as seen while root was mounted
    """
    key_path = Path(key_file or settings.get_setting("key_file"))
    if not key_path.is_file():
        raise FilesystemIOError(key_path, "key file not found")
    name = key_filename or settings.get_setting("key_filename", key_path.name)
    root_dir = Path(mount_root or settings.get_setting("mount_root", settings.DEFAULT_MOUNT_ROOT))

    with operation_context("secrets", key_filename=name):
        layout.open(passphrase)
        root = locator.find_root(locator.find_system_disk(layout))

        try:
            root_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise FilesystemIOError(root_dir, error.strerror or str(error)) from error
        root.mount(root_dir)
        destination = copy_key_file(key_path, root_dir, name)
        root.unmount()

        layout.close()
    return destination
