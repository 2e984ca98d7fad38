"""
Secure Memory - Utilities for handling key material in memory.

Provides:
- Secure zeroing of bytearrays
- SecureBytes container that zeros itself on cleanup
- Constant-time comparison

SECURITY: Cached configuration keys live for the whole session. Holding
them in zeroable buffers keeps the exposure window limited to the time
between unlock and invalidate().

Note: Python's memory model makes truly secure memory handling challenging.
These utilities provide best-effort protection but cannot guarantee
secrets are not copied by the garbage collector or interpreter.
"""

import ctypes
import hmac
import logging
from typing import Union

logger = logging.getLogger(__name__)


def secure_zero_memory(data: Union[bytearray, memoryview]) -> bool:
    """
    Securely zero memory containing sensitive data.

    Args:
        data: A mutable buffer (bytearray or memoryview) to zero

    Returns:
        True if zeroing succeeded, False otherwise

    Example:
        key = bytearray(secret_key)
        try:
            # Use the key...
        finally:
            secure_zero_memory(key)
    """
    if data is None or len(data) == 0:
        return True

    if isinstance(data, memoryview):
        data = data.obj if hasattr(data, 'obj') else data

    if not isinstance(data, bytearray):
        logger.warning("secure_zero_memory requires bytearray, got %s", type(data).__name__)
        return False

    data_len = len(data)

    # ctypes memset bypasses any interpreter-level copy
    try:
        buf = (ctypes.c_char * data_len).from_buffer(data)
        ctypes.memset(ctypes.addressof(buf), 0, data_len)
        del buf
    except (ValueError, TypeError):
        pass

    data[:] = b'\x00' * data_len

    if any(data):
        logger.warning("Memory zeroing verification failed")
        return False

    return True


class SecureBytes:
    """
    A bytearray wrapper that automatically zeros memory on cleanup.

    Use as a context manager for automatic cleanup:

        with SecureBytes(key_data) as key:
            aead = AESGCM(bytes(key))
        # key memory is now zeroed
    """

    def __init__(self, data: Union[bytes, bytearray, None] = None, size: int = 0):
        if data is not None:
            self._data = bytearray(data)
        elif size > 0:
            self._data = bytearray(size)
        else:
            self._data = bytearray()

        self._cleared = False

    @property
    def data(self) -> bytearray:
        if self._cleared:
            raise ValueError("SecureBytes has been cleared")
        return self._data

    @property
    def cleared(self) -> bool:
        return self._cleared

    def __bytes__(self) -> bytes:
        """Convert to bytes (creates a copy - use sparingly)."""
        if self._cleared:
            raise ValueError("SecureBytes has been cleared")
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __enter__(self) -> 'SecureBytes':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.clear()

    def clear(self) -> bool:
        """
        Securely zero and clear the internal buffer.

        Returns:
            True if zeroing succeeded
        """
        if self._cleared:
            return True

        result = secure_zero_memory(self._data)
        self._cleared = True
        self._data = bytearray()

        return result

    def __del__(self):
        if not getattr(self, '_cleared', True):
            self.clear()


def secure_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Constant-time comparison to prevent timing attacks.

    Args:
        a: First value to compare
        b: Second value to compare

    Returns:
        True if values are equal, False otherwise
    """
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')

    return hmac.compare_digest(a, b)


__all__ = [
    'secure_zero_memory',
    'SecureBytes',
    'secure_compare',
]
