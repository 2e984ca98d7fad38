"""
Configuration Module for confvault.

Provides the encrypted configuration store and its building blocks:
- ApplicationConfig lifecycle (init, detect, load, save, delete)
- AES-GCM envelope codec
- Backup-before-overwrite and atomic file replacement
- Run-once lifecycle hooks
- Configuration linting

SECURITY: The configuration file is only ever written encrypted and with
owner-only permissions. A wrong secret is reported to the caller, never
silently accepted.
"""

from .application_config import (
    PERSISTED_FIELDS,
    StoreOptions,
    LoadStatus,
    LoadResult,
    ApplicationConfig,
)
from .backup import (
    backup_path_for,
    atomic_write,
    create_backup,
    restore_backup,
)
from .codec import Envelope, ConfigCodec
from .hooks import HookQueue
from .linter import (
    LintSeverity,
    LintCategory,
    LintFinding,
    LintResult,
    ConfigLinter,
    lint_config,
)

__all__ = [
    'PERSISTED_FIELDS',
    'StoreOptions',
    'LoadStatus',
    'LoadResult',
    'ApplicationConfig',
    'backup_path_for',
    'atomic_write',
    'create_backup',
    'restore_backup',
    'Envelope',
    'ConfigCodec',
    'HookQueue',
    'LintSeverity',
    'LintCategory',
    'LintFinding',
    'LintResult',
    'ConfigLinter',
    'lint_config',
]
