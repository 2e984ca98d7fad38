"""
Security helpers for confvault.

Provides best-effort protection for key material held in memory.
"""

from .secure_memory import (
    secure_zero_memory,
    SecureBytes,
    secure_compare,
)

__all__ = [
    'secure_zero_memory',
    'SecureBytes',
    'secure_compare',
]
