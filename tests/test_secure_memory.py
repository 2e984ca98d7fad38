"""
Tests for confvault/security/secure_memory.py
"""

import os

import pytest

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from confvault.security.secure_memory import SecureBytes, secure_compare, secure_zero_memory


@pytest.mark.security
class TestSecureZeroMemory:
    """Tests for secure_zero_memory()."""

    def test_zeroes_bytearray(self):
        buf = bytearray(b"secret key material")
        assert secure_zero_memory(buf) is True
        assert buf == bytearray(len(b"secret key material"))

    def test_empty_buffer(self):
        assert secure_zero_memory(bytearray()) is True

    def test_rejects_immutable(self):
        assert secure_zero_memory(b"immutable") is False


@pytest.mark.security
class TestSecureBytes:
    """Tests for SecureBytes."""

    def test_holds_copy(self):
        secret = SecureBytes(b"k" * 32)
        assert bytes(secret) == b"k" * 32
        assert len(secret) == 32

    def test_clear(self):
        secret = SecureBytes(b"k" * 32)
        buf = secret.data

        assert secret.clear() is True
        assert secret.cleared is True
        assert not any(buf)
        with pytest.raises(ValueError):
            bytes(secret)

    def test_context_manager(self):
        with SecureBytes(b"abc") as secret:
            assert bytes(secret) == b"abc"
        assert secret.cleared is True

    def test_sized(self):
        assert len(SecureBytes(size=16)) == 16


@pytest.mark.unit
class TestSecureCompare:
    """Tests for secure_compare()."""

    def test_equal(self):
        assert secure_compare(b"abc", "abc") is True

    def test_not_equal(self):
        assert secure_compare("abc", "abd") is False
