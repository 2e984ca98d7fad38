"""
confvault - Encrypted Configuration Persistence
"""

__version__ = "1.0.0"

from .constants import (
    Permissions,
    Files,
    Crypto,
    KeyPolicy,
    Paths,
)

from .errors import (
    ConfigError,
    InitializationError,
    PersistenceNotConfiguredError,
    AuthenticationMismatch,
    ConfigIOError,
    DecodeError,
    KeyManagerError,
    SecretNotSuppliedError,
    KeyLockedOutError,
)

from .crypto import (
    EncryptionParameters,
    EncryptionResult,
    KeyManager,
    PasswordKeyManager,
    MachineKeyManager,
)

from .config import (
    ApplicationConfig,
    StoreOptions,
    LoadResult,
    LoadStatus,
    ConfigLinter,
)

__all__ = [
    '__version__',
    # Constants
    'Permissions',
    'Files',
    'Crypto',
    'KeyPolicy',
    'Paths',
    # Errors
    'ConfigError',
    'InitializationError',
    'PersistenceNotConfiguredError',
    'AuthenticationMismatch',
    'ConfigIOError',
    'DecodeError',
    'KeyManagerError',
    'SecretNotSuppliedError',
    'KeyLockedOutError',
    # Key management
    'EncryptionParameters',
    'EncryptionResult',
    'KeyManager',
    'PasswordKeyManager',
    'MachineKeyManager',
    # Store
    'ApplicationConfig',
    'StoreOptions',
    'LoadResult',
    'LoadStatus',
    'ConfigLinter',
]
