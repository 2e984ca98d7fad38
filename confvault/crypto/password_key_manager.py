"""
Password Key Manager - secret-driven KeyManager with a session cache.

Provides:
- Key derivation from a user secret obtained through a supplier callback
- Session cache so a successful unlock is not re-derived on every save
- Exponential lockout after repeated failed unlock attempts
- Machine-bound variant for unattended encryption

SECURITY: Cached key material is held in SecureBytes and zeroed on
invalidate(). A failed attempt always drops the cache, so a stale key can
never be used to open a file that no longer matches it.
"""

import logging
import sys
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ..constants import KeyPolicy
from ..errors import KeyLockedOutError, KeyManagerError, SecretNotSuppliedError
from ..logging_config import LogLevel
from ..security.secure_memory import SecureBytes
from .key_manager import (
    EncryptionParameters,
    EncryptionResult,
    KeyManager,
    derive_key_material,
    verify_key_check,
)

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == 'win32'

# supplier(params, failed_attempts) -> secret, or None when the user cancelled
SecretSupplier = Callable[[EncryptionParameters, int], Optional[Union[str, bytes]]]


class PasswordKeyManager(KeyManager):
    """
    KeyManager that asks a callback for the secret and caches the result.

    The supplier receives the parameters being unlocked and the number of
    consecutive failed attempts so far, which lets a UI say "wrong
    password, try again".
    """

    def __init__(
        self,
        secret_supplier: SecretSupplier,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            secret_supplier: Callback returning the secret or None
            max_attempts: Failed attempts tolerated before lockout starts
            backoff_base: First lockout window in seconds
            backoff_max: Upper bound for the lockout window
            clock: Monotonic time source (injectable for tests)
        """
        self._supplier = secret_supplier
        self.max_attempts = max_attempts if max_attempts is not None else KeyPolicy.MAX_ATTEMPTS
        self.backoff_base = backoff_base if backoff_base is not None else KeyPolicy.BACKOFF_BASE
        self.backoff_max = backoff_max if backoff_max is not None else KeyPolicy.BACKOFF_MAX
        self._clock = clock
        self._lock = threading.RLock()

        self._cached_key: Optional[SecureBytes] = None
        self._cached_mac: Optional[SecureBytes] = None
        self._cached_fingerprint: Optional[str] = None

        self._failed_attempts = 0
        self._locked_until = 0.0

    @property
    def failed_attempts(self) -> int:
        with self._lock:
            return self._failed_attempts

    @property
    def locked_until(self) -> float:
        with self._lock:
            return self._locked_until

    def is_locked_out(self) -> bool:
        return self._lockout_remaining() > 0

    def has_cached_key(self) -> bool:
        with self._lock:
            return self._cached_key is not None

    def _lockout_remaining(self) -> float:
        with self._lock:
            return max(0.0, self._locked_until - self._clock())

    def _cached_result_for(self, params: EncryptionParameters) -> Optional[EncryptionResult]:
        if self._cached_key is None or self._cached_fingerprint != params.fingerprint():
            return None

        key = bytes(self._cached_key)
        mac = bytes(self._cached_mac)
        if params.check and not verify_key_check(mac, params.check):
            # Same salt, different file contents: the cache is stale
            logger.debug("Cached key does not match stored key check, dropping cache")
            self.invalidate()
            return None

        return EncryptionResult(key=key, mac=mac, valid=True, params=params)

    def generate_key(self, params: EncryptionParameters) -> EncryptionResult:
        with self._lock:
            cached = self._cached_result_for(params)
            if cached is not None:
                logger.debug("Serving configuration key from session cache")
                return cached

            remaining = self._lockout_remaining()
            if remaining > 0:
                raise KeyLockedOutError(remaining)

            secret = self._supplier(params, self._failed_attempts)
            if secret is None or len(secret) == 0:
                raise SecretNotSuppliedError()

            started = time.monotonic()
            key, mac = derive_key_material(secret, params)
            logger.debug(f"Derived configuration key with {params.kdf} in "
                         f"{time.monotonic() - started:.2f}s")

            valid = verify_key_check(mac, params.check) if params.check else True
            return EncryptionResult(key=key, mac=mac, valid=valid, params=params)

    def cache_from_result(self, result: EncryptionResult) -> None:
        if not result.valid or not result.key or result.params is None:
            raise KeyManagerError("cannot cache key material that did not verify")

        with self._lock:
            self._clear_cache()
            self._cached_key = SecureBytes(result.key)
            self._cached_mac = SecureBytes(result.mac)
            self._cached_fingerprint = result.params.fingerprint()
            self._failed_attempts = 0
            self._locked_until = 0.0

    def _clear_cache(self) -> None:
        if self._cached_key is not None:
            self._cached_key.clear()
        if self._cached_mac is not None:
            self._cached_mac.clear()
        self._cached_key = None
        self._cached_mac = None
        self._cached_fingerprint = None

    def invalidate(self) -> None:
        with self._lock:
            self._clear_cache()
        logger.debug("Configuration key cache invalidated")

    def last_attempt_failed(self) -> None:
        with self._lock:
            self._clear_cache()
            self._failed_attempts += 1

            if self._failed_attempts >= self.max_attempts:
                exponent = self._failed_attempts - self.max_attempts
                window = min(self.backoff_max, self.backoff_base * (2 ** exponent))
                self._locked_until = self._clock() + window
                logger.log(
                    LogLevel.SECURITY.value,
                    f"{self._failed_attempts} failed configuration unlock attempts, "
                    f"locked for {window:.1f}s",
                )
            else:
                logger.warning(
                    f"Configuration unlock failed "
                    f"({self._failed_attempts}/{self.max_attempts})"
                )


class MachineKeyManager(PasswordKeyManager):
    """
    KeyManager whose secret is derived from machine identity.

    Useful when the configuration must be encrypted at rest but no user is
    around to type a password. Copying the file to another machine makes it
    unreadable.
    """

    DEFAULT_MACHINE_ID_PATHS = (
        "/etc/machine-id",
        "/var/lib/dbus/machine-id",
    )

    def __init__(
        self,
        machine_id_paths: Optional[Sequence[str]] = None,
        extra_secret: bytes = b"",
        **kwargs,
    ):
        """
        Args:
            machine_id_paths: Files holding machine identifiers
            extra_secret: Installation-specific bytes mixed into the secret
        """
        self._machine_id_paths = [Path(p) for p in (machine_id_paths or self.DEFAULT_MACHINE_ID_PATHS)]
        self._extra_secret = extra_secret
        super().__init__(self._machine_secret, **kwargs)

    def _collect_machine_data(self) -> List[str]:
        machine_data = []

        if IS_WINDOWS:
            try:
                import winreg
                key = winreg.OpenKey(
                    winreg.HKEY_LOCAL_MACHINE,
                    r"SOFTWARE\Microsoft\Cryptography"
                )
                machine_guid, _ = winreg.QueryValueEx(key, "MachineGuid")
                winreg.CloseKey(key)
                machine_data.append(machine_guid)
            except OSError as e:
                logger.warning(f"Could not read machine GUID: {e}")

        for path in self._machine_id_paths:
            try:
                value = path.read_text().strip()
            except OSError:
                continue
            if value:
                machine_data.append(value)
                break

        return machine_data

    def _machine_secret(self, params: EncryptionParameters, failed_attempts: int) -> Optional[bytes]:
        machine_data = self._collect_machine_data()
        if not machine_data:
            logger.error("No machine identity available for configuration key")
            return None
        return "|".join(machine_data).encode("utf-8") + self._extra_secret


__all__ = [
    'SecretSupplier',
    'PasswordKeyManager',
    'MachineKeyManager',
]
