"""
Pytest configuration and shared fixtures for confvault tests.

This module provides common fixtures for testing the configuration store
and its key managers. Key derivation costs are kept low so the suite runs
quickly; production defaults are covered by test_constants.py.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from confvault.config.application_config import ApplicationConfig, StoreOptions
from confvault.crypto.key_manager import (
    EncryptionParameters,
    EncryptionResult,
    KeyManager,
)
from confvault.crypto.password_key_manager import PasswordKeyManager


TEST_SECRET = "correct horse battery staple"
FAST_ITERATIONS = 1000


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="confvault_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def config_dir(temp_dir: Path) -> Path:
    """Provide an existing configuration directory."""
    directory = temp_dir / "confvault"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@pytest.fixture
def config_file(config_dir: Path) -> Path:
    """Provide the configuration file path (not created)."""
    return config_dir / "config.axx"


# ===========================================================================
# Store Fixtures
# ===========================================================================

@pytest.fixture
def fast_options() -> StoreOptions:
    """Store options with a cheap KDF for tests."""
    return StoreOptions(kdf="pbkdf2", kdf_iterations=FAST_ITERATIONS)


@pytest.fixture
def store(config_dir: Path, fast_options: StoreOptions) -> ApplicationConfig:
    """Provide an initialized store with default values, not persistent."""
    config = ApplicationConfig(search_dirs=[config_dir], options=fast_options)
    config.init()
    config.init_default()
    return config


@pytest.fixture
def persistent_store(store: ApplicationConfig) -> ApplicationConfig:
    """Provide an initialized store with persistence enabled."""
    store.enable_persistence()
    return store


@pytest.fixture
def reopen_store(config_dir: Path, fast_options: StoreOptions):
    """Factory for a fresh store that has detected the file in config_dir."""
    def _reopen() -> ApplicationConfig:
        config = ApplicationConfig(search_dirs=[config_dir], options=fast_options)
        config.init()
        config.init_default()
        config.detect_persistence()
        return config
    return _reopen


# ===========================================================================
# Key Manager Fixtures
# ===========================================================================

@pytest.fixture
def test_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def secret_supplier() -> MagicMock:
    """Supplier callback that always returns the test secret."""
    return MagicMock(return_value=TEST_SECRET)


@pytest.fixture
def key_manager(secret_supplier: MagicMock) -> PasswordKeyManager:
    """Provide a PasswordKeyManager backed by the test secret."""
    return PasswordKeyManager(secret_supplier)


def _fixed_key_result(params: EncryptionParameters, key: bytes = b"k" * 32,
                     mac: bytes = b"m" * 32, valid: bool = True) -> EncryptionResult:
    return EncryptionResult(key=key, mac=mac, valid=valid, params=params)


@pytest.fixture
def mock_key_manager() -> MagicMock:
    """Provide a KeyManager mock that derives a fixed, valid key."""
    manager = MagicMock(spec=KeyManager)
    manager.generate_key.side_effect = lambda params: _fixed_key_result(params)
    return manager


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "security: Security-specific tests")
    config.addinivalue_line("markers", "slow: Slow tests (>1s)")
