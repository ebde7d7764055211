"""Install NixOS onto an opened layout.

Sequence:
    1. Open the layout and locate root and EFI through the role locator
    2. Mount root on <mount_root> and EFI on <mount_root>/boot/efi
    3. Copy the NixOS configuration repository into <mount_root>/etc
       (cloned with git first when given a remote URL)
    4. Link etc/nixos/configuration.nix to hosts/<host>.nix
    5. Run nixos-install, unmount EFI then root, close the layout
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

from disklayout.config import settings
from disklayout.logging import LoggerFactory, operation_context
from disklayout.storage import locator
from disklayout.storage.commands import run_command
from disklayout.storage.exceptions import FilesystemIOError, InvalidConfigurationError
from disklayout.storage.layout import Layout


log = LoggerFactory.for_system()

_REMOTE_PREFIXES = ("https://", "http://", "git@", "ssh://")


def is_remote_repository(repository: str) -> bool:
    return repository.startswith(_REMOTE_PREFIXES)


def _make_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise FilesystemIOError(path, error.strerror or str(error)) from error


def _copy_repository(source: str, etc_dir: Path) -> None:
    run_command(["cp", "-rf", source, str(etc_dir)])


def install_repository(repository: str, etc_dir: Path, host: str) -> Path:
    """Copy the configuration repository into ``etc_dir`` and link the host file.

    A remote repository is cloned into a temporary directory that is removed
    once it has been copied.

    Returns:
        The configuration.nix link
    """
    if is_remote_repository(repository):
        with tempfile.TemporaryDirectory(prefix="disk-layout-") as clone_parent:
            clone_dir = Path(clone_parent) / "nixos"
            log.info(f"Cloning {repository} to {clone_dir}")
            run_command(["git", "clone", repository, str(clone_dir)])
            _copy_repository(str(clone_dir), etc_dir)
    else:
        _copy_repository(repository, etc_dir)
    log.info(f"`{repository}` installed to `{etc_dir}`")

    link = etc_dir / "nixos" / "configuration.nix"
    target = Path("hosts") / f"{host}.nix"
    try:
        if os.path.lexists(link):
            link.unlink()
        link.symlink_to(target)
    except OSError as error:
        raise FilesystemIOError(link, f"cannot link configuration: {error}") from error
    log.info(f"`{link}` -> `{target}`")
    return link


def run_installer(root_dir: Path) -> None:
    run_command(["nixos-install", "--no-root-passwd", "--root", str(root_dir)])


def install_system(
    layout: Layout,
    passphrase: Optional[str],
    repository: str,
    host: str,
    *,
    mount_root: Optional[str] = None,
) -> None:
    """Install the host configuration on the system disk of ``layout``.

    A failure aborts immediately and leaves whatever is mounted in place.
    """
    if not repository:
        raise InvalidConfigurationError("repository", "empty")
    if not host:
        raise InvalidConfigurationError("host", "empty")

    root_dir = Path(mount_root or settings.get_setting("mount_root", settings.DEFAULT_MOUNT_ROOT))
    efi_dir = root_dir / "boot" / "efi"
    etc_dir = root_dir / "etc"

    with operation_context("install", host=host):
        layout.open(passphrase)

        disk = locator.find_system_disk(layout)
        root = locator.find_root(disk)
        efi = locator.find_efi(disk)

        _make_dir(root_dir)
        root.mount(root_dir)

        _make_dir(etc_dir)
        _make_dir(efi_dir)
        efi.mount(efi_dir)

        install_repository(repository, etc_dir, host)
        run_installer(root_dir)

        efi.unmount()
        root.unmount()

        layout.close()
