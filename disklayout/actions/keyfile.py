"""Derive a disk key file from a passphrase.

The key is the raw Argon2id hash of the passphrase, salted with the content
of a salt file. The same passphrase, salt and iteration count always give
the same key, so a lost key file can be regenerated.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from disklayout.config import settings
from disklayout.logging import LoggerFactory, operation_context
from disklayout.storage.exceptions import (
    EncryptionError,
    FilesystemIOError,
    InvalidConfigurationError,
)


log = LoggerFactory.for_system()

DEFAULT_KEY_SIZE = 4096
MEMORY_COST = 65536  # KiB
PARALLELISM = 4


def derive_key(password: str, salt: bytes, iterations: int, key_size: int = DEFAULT_KEY_SIZE) -> bytes:
    """Hash ``password`` into ``key_size`` raw bytes.

    Raises:
        InvalidConfigurationError: If a parameter is empty or not positive
        EncryptionError: If argon2 rejects the parameters (e.g. a short salt)
    """
    if not password:
        raise InvalidConfigurationError("password", "empty")
    if not salt:
        raise InvalidConfigurationError("salt", "empty")
    if iterations <= 0:
        raise InvalidConfigurationError("iterations", f"must be positive, got {iterations}")
    if key_size <= 0:
        raise InvalidConfigurationError("key_size", f"must be positive, got {key_size}")

    try:
        return hash_secret_raw(
            secret=password.encode(),
            salt=salt,
            time_cost=iterations,
            memory_cost=MEMORY_COST,
            parallelism=PARALLELISM,
            hash_len=key_size,
            type=Type.ID,
        )
    except HashingError as error:
        raise EncryptionError(f"Cannot derive key: {error}") from error


def write_key_file(
    password: str,
    salt_file: str | Path,
    iterations: int,
    key_size: int = DEFAULT_KEY_SIZE,
    output: Optional[str | Path] = None,
) -> Path:
    """Derive the key and write it to ``output`` (the ``key_file`` setting by default).

    Returns:
        Path of the written key file
    """
    salt_path = Path(salt_file)
    destination = Path(output or settings.get_setting("key_file"))

    with operation_context("keyfile", output=str(destination)):
        try:
            salt = salt_path.read_bytes()
        except OSError as error:
            raise FilesystemIOError(salt_path, error.strerror or str(error)) from error

        key = derive_key(password, salt, iterations, key_size)

        try:
            destination.write_bytes(key)
        except OSError as error:
            raise FilesystemIOError(destination, error.strerror or str(error)) from error

    log.info(f"Key file written to `{destination}`")
    return destination
