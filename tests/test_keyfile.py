"""Tests for disklayout.actions.keyfile - passphrase derived key files."""

import pytest

from disklayout.actions import keyfile
from disklayout.config import settings
from disklayout.storage.exceptions import (
    EncryptionError,
    FilesystemIOError,
    InvalidConfigurationError,
)


SALT = b"0123456789abcdef"


@pytest.fixture
def salt_file(tmp_path):
    path = tmp_path / "salt"
    path.write_bytes(SALT)
    return path


class TestDeriveKey:
    """Tests for derive_key()."""

    def test_default_key_size(self):
        assert len(keyfile.derive_key("secret", SALT, 1)) == 4096

    def test_custom_key_size(self):
        assert len(keyfile.derive_key("secret", SALT, 1, key_size=64)) == 64

    def test_same_inputs_give_same_key(self):
        first = keyfile.derive_key("secret", SALT, 2, key_size=64)
        assert keyfile.derive_key("secret", SALT, 2, key_size=64) == first

    def test_inputs_change_the_key(self):
        key = keyfile.derive_key("secret", SALT, 1, key_size=64)

        assert keyfile.derive_key("other", SALT, 1, key_size=64) != key
        assert keyfile.derive_key("secret", SALT[::-1], 1, key_size=64) != key
        assert keyfile.derive_key("secret", SALT, 2, key_size=64) != key

    def test_uses_argon2id_parameters(self, mocker):
        hash_raw = mocker.patch(
            "disklayout.actions.keyfile.hash_secret_raw", return_value=b"k" * 32
        )

        keyfile.derive_key("secret", SALT, 3, key_size=32)

        hash_raw.assert_called_once_with(
            secret=b"secret",
            salt=SALT,
            time_cost=3,
            memory_cost=65536,
            parallelism=4,
            hash_len=32,
            type=keyfile.Type.ID,
        )

    @pytest.mark.parametrize(
        "password,iterations,key_size,field",
        [
            ("secret", 0, 64, "iterations"),
            ("secret", -1, 64, "iterations"),
            ("secret", 1, 0, "key_size"),
            ("", 1, 64, "password"),
        ],
    )
    def test_invalid_parameters(self, password, iterations, key_size, field):
        with pytest.raises(InvalidConfigurationError) as excinfo:
            keyfile.derive_key(password, SALT, iterations, key_size)
        assert excinfo.value.field == field

    def test_empty_salt(self):
        with pytest.raises(InvalidConfigurationError):
            keyfile.derive_key("secret", b"", 1)

    def test_short_salt_is_rejected_by_argon2(self):
        with pytest.raises(EncryptionError, match="Cannot derive key"):
            keyfile.derive_key("secret", b"abc", 1, key_size=64)


class TestWriteKeyFile:
    """Tests for write_key_file()."""

    def test_writes_derived_key(self, tmp_path, salt_file):
        output = tmp_path / "disk.key"

        written = keyfile.write_key_file("secret", salt_file, 1, 64, output)

        assert written == output
        assert output.read_bytes() == keyfile.derive_key("secret", SALT, 1, 64)

    def test_default_output_is_key_file_setting(self, tmp_path, salt_file, monkeypatch):
        target = tmp_path / "from-settings.key"
        monkeypatch.setitem(settings.settings_store.values, "key_file", str(target))

        assert keyfile.write_key_file("secret", salt_file, 1, 64) == target
        assert len(target.read_bytes()) == 64

    def test_missing_salt_file(self, tmp_path):
        output = tmp_path / "disk.key"

        with pytest.raises(FilesystemIOError) as excinfo:
            keyfile.write_key_file("secret", tmp_path / "missing", 1, 64, output)

        assert excinfo.value.path == tmp_path / "missing"
        assert not output.exists()

    def test_unwritable_output(self, tmp_path, salt_file):
        with pytest.raises(FilesystemIOError):
            keyfile.write_key_file("secret", salt_file, 1, 64, tmp_path / "no-dir" / "disk.key")
