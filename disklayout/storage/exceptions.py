"""Custom exceptions for storage layout operations.

Every failure surfaces to the caller as a StorageError subclass carrying a
``kind`` tag, so the CLI can print a kind-tagged, human-readable message.

Exception Hierarchy:
    StorageError (base)
        ├── CommandError
        │   ├── CommandNotFoundError
        │   └── CommandFailedError
        ├── FilesystemIOError
        ├── InvalidConfigurationError
        │   ├── InvalidValueError
        │   └── AmbiguousRoleError
        ├── LayoutError
        │   ├── RoleNotFoundError
        │   └── DeviceResolutionError
        ├── SettleTimeoutError
        ├── FormatError
        ├── EncryptionError
        ├── VolumeGroupError
        ├── PoolError
        └── MountError
            ├── MountFailedError
            └── UnmountFailedError

Usage:
    from disklayout.storage.exceptions import RoleNotFoundError

    if match is None:
        raise RoleNotFoundError("Root partition not found")
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class StorageError(Exception):
    """Base exception for all storage operations."""

    kind = "generic"

    def describe(self) -> str:
        return f"({self.kind.upper()}) {self}"


class CommandError(StorageError):
    """Base exception for external command errors."""

    kind = "command"

    def __init__(self, command: Sequence[str], message: str):
        self.command = list(command)
        super().__init__(message)

    @property
    def command_name(self) -> str:
        return self.command[0] if self.command else ""


class CommandNotFoundError(CommandError):
    """The external tool could not be spawned."""

    def __init__(self, command: Sequence[str], reason: str = ""):
        self.reason = reason
        msg = f"Cannot run `{command[0] if command else ''}`"
        if reason:
            msg += f": {reason}"
        super().__init__(command, msg)


class CommandFailedError(CommandError):
    """The external tool exited with a non-zero status."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stderr: str = "",
        stdout: str = "",
    ):
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        msg = f"`{' '.join(command)}` returned {returncode}"
        detail = (stderr or stdout).strip()
        if detail:
            msg += f": {detail}"
        super().__init__(command, msg)


class FilesystemIOError(StorageError):
    """Reading or writing a local file failed."""

    kind = "filesystem"

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path} => {reason}")


class InvalidConfigurationError(StorageError):
    """The layout description is malformed or incomplete."""

    kind = "invalid-value"

    def __init__(self, field: str, reason: str = ""):
        self.field = field
        self.reason = reason
        msg = f"Invalid configuration: {field}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InvalidValueError(InvalidConfigurationError):
    """A single value could not be parsed (enum tag, size string, ...)."""

    def __init__(self, field: str, value: object):
        self.value = value
        super().__init__(field, f"unrecognized value {value!r}")


class AmbiguousRoleError(InvalidConfigurationError):
    """More than one node claims the same role (root, EFI)."""

    def __init__(self, role: str, candidates: Sequence[str]):
        self.role = role
        self.candidates = list(candidates)
        super().__init__(
            role, f"{len(self.candidates)} candidates: {', '.join(self.candidates)}"
        )


class LayoutError(StorageError):
    """Unrecoverable generic condition while walking the layout."""


class RoleNotFoundError(LayoutError):
    """No node in the tree matches the searched role."""


class DeviceResolutionError(LayoutError):
    """A freshly created partition could not be mapped to a device node."""

    def __init__(self, device: str, reason: str):
        self.device = device
        self.reason = reason
        super().__init__(f"Cannot resolve {device}: {reason}")


class SettleTimeoutError(StorageError):
    """A device node did not appear within the settle timeout."""

    kind = "timeout"

    def __init__(self, description: str, timeout: float):
        self.description = description
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s waiting for {description}")


class FormatError(StorageError):
    """Formatting a device failed or the filesystem tag is unsupported."""

    def __init__(self, message: str, device: str | None = None):
        self.device = device
        super().__init__(message)


class EncryptionError(StorageError):
    """Block-level encryption operation failed."""


class VolumeGroupError(StorageError):
    """Volume-manager operation failed."""


class PoolError(StorageError):
    """Pooled-filesystem operation failed."""


class MountError(StorageError):
    """Base exception for mount-related errors."""


class MountFailedError(MountError):
    """Failed to mount a device."""

    def __init__(self, device: str, mountpoint: str, reason: str = ""):
        self.device = device
        self.mountpoint = mountpoint
        self.reason = reason
        msg = f"Failed to mount {device} on {mountpoint}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnmountFailedError(MountError):
    """Failed to unmount a device."""

    def __init__(self, device: str, reason: str = ""):
        self.device = device
        self.reason = reason
        msg = f"Failed to unmount {device}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
