"""
Key Manager contract - turns a derivation input into key material.

The configuration store never derives keys itself. It hands the
EncryptionParameters found in (or generated for) the persisted file to an
injected KeyManager and gets back an EncryptionResult. Concrete managers
decide where the secret comes from, how long derived material is cached
and how failed attempts are throttled.

Derivation produces 64 bytes, split into:
- key: 32-byte AES-256-GCM key
- mac: 32-byte authentication key, bound into the envelope as associated
  data and used to compute the key-check value stored with the parameters

The key-check value lets a manager tell a wrong secret apart from a
successful derivation before any ciphertext is touched.
"""

import base64
import binascii
import hashlib
import hmac
import json
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..constants import Crypto
from ..errors import DecodeError
from ..security.secure_memory import secure_compare

KDF_PBKDF2 = "pbkdf2"
KDF_SCRYPT = "scrypt"
SUPPORTED_KDFS = (KDF_PBKDF2, KDF_SCRYPT)


def _b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64d(value: Any, name: str) -> bytes:
    if not isinstance(value, str):
        raise DecodeError(f"encryption parameter '{name}' must be a base64 string")
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise DecodeError(f"encryption parameter '{name}' is not valid base64: {e}")


def _bounded_int(data: Dict[str, Any], name: str, default: int, maximum: int) -> int:
    value = data.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise DecodeError(f"encryption parameter '{name}' must be a positive integer")
    if value > maximum:
        raise DecodeError(f"encryption parameter '{name}' exceeds {maximum}")
    return value


@dataclass(frozen=True)
class EncryptionParameters:
    """Everything besides the secret that key derivation needs."""
    kdf: str = KDF_PBKDF2
    salt: bytes = b""
    iterations: int = Crypto.PBKDF2_ITERATIONS
    n: int = Crypto.SCRYPT_N
    r: int = Crypto.SCRYPT_R
    p: int = Crypto.SCRYPT_P
    # Key-check value; empty until the parameters have been used for a save
    check: bytes = b""

    @classmethod
    def generate(
        cls,
        kdf: Optional[str] = None,
        iterations: Optional[int] = None,
        n: Optional[int] = None,
    ) -> 'EncryptionParameters':
        """Fresh parameters with a random salt."""
        kdf = kdf or Crypto.DEFAULT_KDF
        if kdf not in SUPPORTED_KDFS:
            raise ValueError(f"unsupported key derivation function: {kdf}")
        params = cls(
            kdf=kdf,
            salt=secrets.token_bytes(Crypto.SALT_SIZE),
            iterations=iterations or Crypto.PBKDF2_ITERATIONS,
            n=n or Crypto.SCRYPT_N,
        )
        # Must stay readable by from_dict()
        try:
            cls.from_dict(params.to_dict(include_check=False))
        except DecodeError as e:
            raise ValueError(str(e)) from e
        return params

    def with_check(self, check: bytes) -> 'EncryptionParameters':
        return replace(self, check=check)

    def to_dict(self, include_check: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kdf": self.kdf, "salt": _b64e(self.salt)}
        if self.kdf == KDF_SCRYPT:
            data.update({"n": self.n, "r": self.r, "p": self.p})
        else:
            data["iterations"] = self.iterations
        if include_check:
            data["check"] = _b64e(self.check)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> 'EncryptionParameters':
        """Parse parameters read from a persisted envelope."""
        if not isinstance(data, dict):
            raise DecodeError("encryption parameters must be an object")

        kdf = data.get("kdf")
        if kdf not in SUPPORTED_KDFS:
            raise DecodeError(f"unsupported key derivation function: {kdf!r}")

        salt = _b64d(data.get("salt"), "salt")
        if not salt:
            raise DecodeError("encryption parameter 'salt' is empty")
        check = _b64d(data.get("check", ""), "check")

        if kdf == KDF_SCRYPT:
            n = _bounded_int(data, "n", Crypto.SCRYPT_N, Crypto.SCRYPT_N_MAX)
            r = _bounded_int(data, "r", Crypto.SCRYPT_R, Crypto.SCRYPT_R_MAX)
            p = _bounded_int(data, "p", Crypto.SCRYPT_P, Crypto.SCRYPT_P_MAX)
            if n < 2 or n & (n - 1):
                raise DecodeError("encryption parameter 'n' must be a power of two")
            if 128 * n * r > Crypto.SCRYPT_MEMORY_MAX:
                raise DecodeError("scrypt parameters need more memory than allowed")
            return cls(kdf=kdf, salt=salt, n=n, r=r, p=p, check=check)
        return cls(
            kdf=kdf,
            salt=salt,
            iterations=_bounded_int(
                data, "iterations", Crypto.PBKDF2_ITERATIONS, Crypto.PBKDF2_ITERATIONS_MAX
            ),
            check=check,
        )

    def canonical_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    def fingerprint(self) -> str:
        """Identity of the derivation inputs (the check value is excluded)."""
        encoded = json.dumps(
            self.to_dict(include_check=False), sort_keys=True, separators=(",", ":")
        ).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


@dataclass(frozen=True)
class EncryptionResult:
    """
    Output of key derivation.

    valid is False when the derived material does not match the key-check
    value stored with the parameters, i.e. the secret was wrong.
    """
    key: bytes = field(default=b"", repr=False)
    mac: bytes = field(default=b"", repr=False)
    valid: bool = False
    params: Optional[EncryptionParameters] = None


class KeyManager(ABC):
    """
    Capability consumed by the configuration store.

    Implementations own the secret source, the session cache and any
    attempt-count or lockout policy. The store treats this purely as an
    interface and never inspects the derivation algorithm.
    """

    @abstractmethod
    def generate_key(self, params: EncryptionParameters) -> EncryptionResult:
        """Derive (or serve from cache) key material for params."""

    @abstractmethod
    def cache_from_result(self, result: EncryptionResult) -> None:
        """Keep result for reuse within the session. Raises KeyManagerError."""

    @abstractmethod
    def invalidate(self) -> None:
        """Drop cached key material."""

    @abstractmethod
    def last_attempt_failed(self) -> None:
        """Record a failed unlock attempt."""


def derive_key_material(
    secret: Union[str, bytes],
    params: EncryptionParameters,
) -> Tuple[bytes, bytes]:
    """
    Run the KDF named by params over secret.

    Returns:
        Tuple of (key, mac), 32 bytes each
    """
    if isinstance(secret, str):
        secret = secret.encode("utf-8")

    length = Crypto.KEY_SIZE + Crypto.MAC_SIZE
    try:
        if params.kdf == KDF_SCRYPT:
            kdf = Scrypt(salt=params.salt, length=length, n=params.n, r=params.r, p=params.p)
        elif params.kdf == KDF_PBKDF2:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=length,
                salt=params.salt,
                iterations=params.iterations,
            )
        else:
            raise ValueError(f"unsupported key derivation function: {params.kdf}")

        material = kdf.derive(bytes(secret))
    except ValueError as e:
        raise DecodeError(f"unusable key derivation parameters: {e}") from e

    return material[:Crypto.KEY_SIZE], material[Crypto.KEY_SIZE:]


def compute_key_check(mac: bytes) -> bytes:
    """Key-check value stored alongside the parameters."""
    return hmac.new(bytes(mac), Crypto.KEY_CHECK_LABEL, hashlib.sha256).digest()


def verify_key_check(mac: bytes, check: bytes) -> bool:
    """Constant-time check of derived material against a stored value."""
    return secure_compare(compute_key_check(mac), check)


__all__ = [
    'KDF_PBKDF2',
    'KDF_SCRYPT',
    'SUPPORTED_KDFS',
    'EncryptionParameters',
    'EncryptionResult',
    'KeyManager',
    'derive_key_material',
    'compute_key_check',
    'verify_key_check',
]
