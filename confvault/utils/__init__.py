"""
Utility modules for confvault.

Provides common utilities including:
- Error handling with verbose logging
- Deduplication of repeated failures
"""

from .error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ErrorDeduplicator,
    handle_error,
    safe_execute,
    determine_severity,
    log_security_error,
    log_filesystem_error,
)

__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ErrorDeduplicator',
    'handle_error',
    'safe_execute',
    'determine_severity',
    'log_security_error',
    'log_filesystem_error',
]
