"""
Centralized Constants Module for confvault.

This module consolidates file names, permission modes, key-derivation
costs and unlock policy values used by the configuration store, so that
security-sensitive values are easy to audit in one place.

SECURITY: KDF costs and file modes are the two knobs that decide how
expensive an offline attack on a stolen configuration file is. They can be
raised through environment variables but never lowered below the minimums
declared here.

Usage:
    from confvault.constants import Crypto, Files, Permissions, Paths

    os.chmod(path, Permissions.SECURE_FILE)
    dirs = Paths.config_dirs()
"""

import os
import sys
import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == 'win32'

ENV_PREFIX = "CONFVAULT_"


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    validator: Optional[Callable[[T], bool]] = None,
    min_value: Optional[T] = None,
    max_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    SECURITY: Allows runtime tuning of security-critical values while
    keeping safe defaults. Out-of-range values are rejected.

    Args:
        env_var: Environment variable name (will be prefixed with CONFVAULT_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        validator: Optional validation function
        min_value: Optional minimum allowed value
        max_value: Optional maximum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None:
        return default

    try:
        converted = converter(env_value)

        if min_value is not None and converted < min_value:
            logger.warning(
                f"SECURITY: {full_env_var}={env_value} below minimum {min_value}, using default"
            )
            return default
        if max_value is not None and converted > max_value:
            logger.warning(
                f"SECURITY: {full_env_var}={env_value} above maximum {max_value}, using default"
            )
            return default

        if validator is not None and not validator(converted):
            logger.warning(
                f"SECURITY: {full_env_var}={env_value} failed validation, using default"
            )
            return default

        logger.info(f"Using {full_env_var}={converted} (override)")
        return converted

    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default


def _is_power_of_two(value: int) -> bool:
    return value > 1 and (value & (value - 1)) == 0


# =============================================================================
# PERMISSION CONSTANTS
# =============================================================================

class Permissions(IntEnum):
    """
    File permission modes for persisted configuration.

    SECURITY: The configuration file and its backup hold ciphertext of
    credentials and identifiers. Owner-only is the only sane default.
    """
    SECURE_FILE = 0o600                 # rw------- (config, backup)
    SECURE_DIR = 0o700                  # rwx------ (config directory)

    # Bits that must not be set on a secure file
    GROUP_OTHER_MASK = 0o077


# =============================================================================
# FILE NAME CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Files:
    """File names used inside a configuration directory."""
    CONFIG_FILE: str = "config.axx"
    BACKUP_SUFFIX: str = ".bak"
    TEMP_PREFIX: str = ".config-"
    TEMP_SUFFIX: str = ".tmp"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "confvault.log"

    # First line of every encrypted configuration file
    ENCRYPTED_HEADER: str = "# CONFVAULT-ENCRYPTED-CONFIG v1\n"
    ENVELOPE_VERSION: int = 1


# =============================================================================
# CRYPTOGRAPHIC CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Crypto:
    """
    Key derivation and cipher parameters.

    SECURITY: These values follow OWASP recommendations.
    Do not reduce iterations or key sizes without security review.
    """
    # Key Derivation (OWASP recommended minimums)
    # Override with: CONFVAULT_KDF_ITERATIONS=600000
    PBKDF2_ITERATIONS: int = _env_override(
        "KDF_ITERATIONS", 480000, int, min_value=310000, max_value=10_000_000
    )
    PBKDF2_ITERATIONS_MIN: int = 310000

    # scrypt cost (N must be a power of two)
    SCRYPT_N: int = _env_override(
        "SCRYPT_N", 2 ** 15, int, validator=_is_power_of_two, min_value=2 ** 14, max_value=2 ** 20
    )
    SCRYPT_R: int = 8
    SCRYPT_P: int = 1

    # Upper bounds for cost parameters read back from a file
    PBKDF2_ITERATIONS_MAX: int = 10_000_000
    SCRYPT_N_MAX: int = 2 ** 20
    SCRYPT_R_MAX: int = 32
    SCRYPT_P_MAX: int = 16
    SCRYPT_MEMORY_MAX: int = 2 ** 30    # 128 * N * r bytes

    DEFAULT_KDF: str = _env_override(
        "KDF", "pbkdf2", str, validator=lambda v: v in ("pbkdf2", "scrypt")
    )

    # Key sizes
    KEY_SIZE: int = 32                  # AES-256 key
    MAC_SIZE: int = 32                  # Associated-data / key-check key
    SALT_SIZE: int = 32                 # 256-bit salt
    NONCE_SIZE: int = 12                # 96-bit GCM nonce

    # Unique configuration identifier
    UNIQUE_ID_BYTES: int = 32

    # Label mixed into the key-check value
    KEY_CHECK_LABEL: bytes = b"confvault key check v1"


# =============================================================================
# UNLOCK POLICY CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class KeyPolicy:
    """
    Failed-unlock handling for password-based key managers.

    SECURITY: Backoff slows down online guessing through the UI. It is not
    a substitute for KDF cost against offline attacks.
    """
    MAX_ATTEMPTS: int = _env_override("MAX_UNLOCK_ATTEMPTS", 5, int, min_value=1, max_value=100)
    BACKOFF_BASE: float = 1.0           # First lockout window (seconds)
    BACKOFF_MAX: float = 300.0          # Longest lockout window (seconds)


# =============================================================================
# PATHS
# =============================================================================

class Paths:
    """Well-known configuration locations, searched in order."""

    APP_DIR_NAME = "confvault"

    @staticmethod
    def config_dirs() -> List[Path]:
        """Return candidate configuration directories, most specific first."""
        dirs: List[Path] = []

        override = os.environ.get(f"{ENV_PREFIX}CONFIG_DIR")
        if override:
            dirs.append(Path(override).expanduser())

        if IS_WINDOWS:
            appdata = os.environ.get("APPDATA")
            if appdata:
                dirs.append(Path(appdata) / Paths.APP_DIR_NAME)
        else:
            xdg = os.environ.get("XDG_CONFIG_HOME")
            if xdg:
                dirs.append(Path(xdg) / Paths.APP_DIR_NAME)
            dirs.append(Path.home() / ".config" / Paths.APP_DIR_NAME)

        # De-duplicate while keeping order
        seen = set()
        unique = []
        for d in dirs:
            if d not in seen:
                seen.add(d)
                unique.append(d)
        return unique

    @staticmethod
    def default_log_file(config_dir: Optional[Path] = None) -> str:
        if config_dir is None:
            dirs = Paths.config_dirs()
            config_dir = dirs[0] if dirs else Path.cwd()
        return str(Path(config_dir) / Files.LOG_DIR / Files.LOG_FILE)


__all__ = [
    'ENV_PREFIX',
    'Permissions',
    'Files',
    'Crypto',
    'KeyPolicy',
    'Paths',
]
