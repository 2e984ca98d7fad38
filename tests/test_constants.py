"""
Tests for the Constants module.

Tests centralized configuration values and environment overrides.
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from confvault.constants import (
    Crypto,
    Files,
    KeyPolicy,
    Paths,
    Permissions,
    _env_override,
    _is_power_of_two,
)


# ===========================================================================
# Permission Constants Tests
# ===========================================================================

class TestPermissions:
    """Tests for Permissions enum."""

    def test_secure_file_is_owner_only(self):
        assert Permissions.SECURE_FILE == 0o600
        assert Permissions.SECURE_FILE & Permissions.GROUP_OTHER_MASK == 0

    def test_secure_dir_is_owner_only(self):
        assert Permissions.SECURE_DIR == 0o700
        assert Permissions.SECURE_DIR & Permissions.GROUP_OTHER_MASK == 0


# ===========================================================================
# Crypto Constants Tests
# ===========================================================================

class TestCrypto:
    """Tests for Crypto dataclass."""

    def test_iterations_meet_minimum(self):
        assert Crypto.PBKDF2_ITERATIONS >= Crypto.PBKDF2_ITERATIONS_MIN

    def test_scrypt_n_is_power_of_two(self):
        assert _is_power_of_two(Crypto.SCRYPT_N)

    def test_key_sizes(self):
        assert Crypto.KEY_SIZE == 32
        assert Crypto.MAC_SIZE == 32
        assert Crypto.SALT_SIZE >= 16
        assert Crypto.NONCE_SIZE == 12

    def test_unique_id_length(self):
        assert Crypto.UNIQUE_ID_BYTES * 2 == 64

    def test_default_kdf_supported(self):
        assert Crypto.DEFAULT_KDF in ("pbkdf2", "scrypt")


class TestFiles:
    """Tests for Files dataclass."""

    def test_config_file_name(self):
        assert Files.CONFIG_FILE == "config.axx"
        assert Files.BACKUP_SUFFIX == ".bak"

    def test_header_is_single_line(self):
        assert Files.ENCRYPTED_HEADER.endswith("\n")
        assert Files.ENCRYPTED_HEADER.count("\n") == 1


class TestKeyPolicy:
    """Tests for KeyPolicy dataclass."""

    def test_backoff_ordered(self):
        assert 0 < KeyPolicy.BACKOFF_BASE < KeyPolicy.BACKOFF_MAX

    def test_max_attempts_positive(self):
        assert KeyPolicy.MAX_ATTEMPTS >= 1


# ===========================================================================
# Environment Override Tests
# ===========================================================================

class TestEnvOverride:
    """Tests for _env_override()."""

    def test_default_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _env_override("KDF_ITERATIONS", 480000, int) == 480000

    def test_override_applied(self):
        with patch.dict(os.environ, {"CONFVAULT_KDF_ITERATIONS": "600000"}):
            assert _env_override("KDF_ITERATIONS", 480000, int, min_value=310000) == 600000

    def test_below_minimum_uses_default(self):
        with patch.dict(os.environ, {"CONFVAULT_KDF_ITERATIONS": "1000"}):
            assert _env_override("KDF_ITERATIONS", 480000, int, min_value=310000) == 480000

    def test_above_maximum_uses_default(self):
        with patch.dict(os.environ, {"CONFVAULT_MAX_UNLOCK_ATTEMPTS": "1000"}):
            assert _env_override("MAX_UNLOCK_ATTEMPTS", 5, int, max_value=100) == 5

    def test_invalid_value_uses_default(self):
        with patch.dict(os.environ, {"CONFVAULT_KDF_ITERATIONS": "lots"}):
            assert _env_override("KDF_ITERATIONS", 480000, int) == 480000

    def test_validator_rejects(self):
        with patch.dict(os.environ, {"CONFVAULT_SCRYPT_N": "30000"}):
            assert _env_override("SCRYPT_N", 2 ** 15, int, validator=_is_power_of_two) == 2 ** 15

    @pytest.mark.parametrize("value,expected", [(1, False), (2, True), (3, False), (1024, True)])
    def test_is_power_of_two(self, value, expected):
        assert _is_power_of_two(value) is expected


# ===========================================================================
# Path Tests
# ===========================================================================

class TestPaths:
    """Tests for Paths search order."""

    def test_override_comes_first(self, temp_dir):
        with patch.dict(os.environ, {"CONFVAULT_CONFIG_DIR": str(temp_dir)}):
            assert Paths.config_dirs()[0] == temp_dir

    @pytest.mark.skipif(sys.platform == 'win32', reason="XDG layout")
    def test_xdg_before_home(self, temp_dir):
        env = {"XDG_CONFIG_HOME": str(temp_dir)}
        with patch.dict(os.environ, env):
            os.environ.pop("CONFVAULT_CONFIG_DIR", None)
            dirs = Paths.config_dirs()
        assert dirs[0] == temp_dir / "confvault"
        assert dirs[-1] == Path.home() / ".config" / "confvault"

    def test_no_duplicates(self, temp_dir):
        with patch.dict(os.environ, {"CONFVAULT_CONFIG_DIR": str(temp_dir / "confvault"),
                                     "XDG_CONFIG_HOME": str(temp_dir)}):
            dirs = Paths.config_dirs()
        assert len(dirs) == len(set(dirs))

    def test_default_log_file(self, temp_dir):
        assert Paths.default_log_file(temp_dir) == str(temp_dir / "logs" / "confvault.log")
