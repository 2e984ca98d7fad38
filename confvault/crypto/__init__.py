"""
Key management for confvault.

The configuration store consumes the abstract KeyManager capability;
PasswordKeyManager and MachineKeyManager are the bundled implementations.
"""

from .key_manager import (
    KDF_PBKDF2,
    KDF_SCRYPT,
    EncryptionParameters,
    EncryptionResult,
    KeyManager,
    derive_key_material,
    compute_key_check,
    verify_key_check,
)
from .password_key_manager import (
    SecretSupplier,
    PasswordKeyManager,
    MachineKeyManager,
)

__all__ = [
    'KDF_PBKDF2',
    'KDF_SCRYPT',
    'EncryptionParameters',
    'EncryptionResult',
    'KeyManager',
    'derive_key_material',
    'compute_key_check',
    'verify_key_check',
    'SecretSupplier',
    'PasswordKeyManager',
    'MachineKeyManager',
]
