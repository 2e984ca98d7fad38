"""
confvault Exceptions

Exception hierarchy for the configuration store and its key managers.
Wrong secrets are reported through LoadResult during load, never raised;
everything else aborts only the current operation.
"""

from typing import Optional

from .utils.error_handling import ErrorCategory


class ConfigError(Exception):
    """Base exception for all configuration store errors."""

    category = ErrorCategory.CONFIG

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or message


class InitializationError(ConfigError):
    """Raised when load or save is attempted before init()."""

    def __init__(self, message: str = "required configuration-init not executed"):
        super().__init__(message)


class PersistenceNotConfiguredError(ConfigError):
    """Raised when saving without a detected or configured file."""

    def __init__(self, message: str = "persistent configuration is not enabled"):
        super().__init__(message)


class AuthenticationMismatch(ConfigError):
    """The derived key does not open the persisted envelope."""
    category = ErrorCategory.SECURITY


class ConfigIOError(ConfigError):
    """Filesystem failure while reading, writing, backing up or deleting."""
    category = ErrorCategory.FILESYSTEM

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class DecodeError(ConfigError):
    """Persisted data is structurally corrupt (unrelated to the key)."""
    category = ErrorCategory.DECODE


class KeyManagerError(ConfigError):
    """Base exception for key manager failures."""
    category = ErrorCategory.AUTH


class SecretNotSuppliedError(KeyManagerError):
    """The secret supplier returned nothing (e.g. the prompt was cancelled)."""

    def __init__(self, message: str = "no secret supplied"):
        super().__init__(message)


class KeyLockedOutError(KeyManagerError):
    """Too many failed unlock attempts; derivation refused for a while."""

    def __init__(self, retry_after: float):
        super().__init__(f"too many failed attempts, retry in {retry_after:.1f}s")
        self.retry_after = retry_after


__all__ = [
    'ConfigError',
    'InitializationError',
    'PersistenceNotConfiguredError',
    'AuthenticationMismatch',
    'ConfigIOError',
    'DecodeError',
    'KeyManagerError',
    'SecretNotSuppliedError',
    'KeyLockedOutError',
]
