"""
Error Handling Utilities for confvault

Provides consistent error reporting across the configuration store:
1. Detailed error logging with context
2. Error categorization and severity levels
3. Stack trace preservation
4. Deduplication of repeated failures in the log

USAGE:
    from confvault.utils.error_handling import (
        handle_error,
        ErrorCategory,
        safe_execute,
        log_filesystem_error,
    )

    # Context manager usage
    with safe_execute("reading config", ErrorCategory.FILESYSTEM) as result:
        result.value = path.read_bytes()

    # Direct error handling
    try:
        os.replace(tmp, path)
    except OSError as e:
        log_filesystem_error(e, "replace_config", path=str(path))
        raise
"""

import logging
import time
import threading
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for proper handling and reporting."""
    # Key material, tampering, wrong secret
    SECURITY = "security"

    # Unlock attempts
    AUTH = "authentication"

    # File system errors
    FILESYSTEM = "filesystem"

    # Configuration state and lifecycle errors
    CONFIG = "configuration"

    # Malformed persisted data
    DECODE = "decode"

    # Unknown/uncategorized
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Detailed context information for an error."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    thread_name: str = field(default_factory=lambda: threading.current_thread().name)
    stack_trace: str = ""
    additional_context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.stack_trace:
            self.stack_trace = traceback.format_exc()

    def format_log_message(self) -> str:
        """Format a detailed log message."""
        lines = [
            f"ERROR [{self.severity.value.upper()}] in {self.operation}",
            f"  Category: {self.category.value}",
            f"  Type: {type(self.error).__name__}",
            f"  Message: {self.error}",
            f"  Thread: {self.thread_name}",
        ]

        if self.additional_context:
            lines.append("  Context:")
            for key, value in self.additional_context.items():
                lines.append(f"    {key}: {value}")

        trace = self.stack_trace.strip()
        if trace and trace != "NoneType: None":
            lines.append("  Stack Trace:")
            for line in trace.split('\n'):
                if line.strip():
                    lines.append(f"    {line}")

        return '\n'.join(lines)


class ErrorDeduplicator:
    """
    Collapses repeats of the same failure inside a time window.

    A retry loop around a broken file would otherwise log the same
    multi-line report on every attempt. Thread-safe.
    """

    def __init__(self, window_seconds: float = 60.0, clock=time.monotonic):
        self._lock = threading.Lock()
        self._window = window_seconds
        self._clock = clock
        self._last_logged: Dict[str, float] = {}
        self._suppressed: Dict[str, int] = {}

    @staticmethod
    def key_for(context: ErrorContext) -> str:
        return f"{context.category.value}:{type(context.error).__name__}:{context.operation}"

    def register(self, context: ErrorContext) -> Optional[int]:
        """
        Record an occurrence.

        Returns:
            None if the occurrence should only be logged briefly, otherwise
            the number of repeats suppressed since it was last logged in full
        """
        key = self.key_for(context)
        now = self._clock()

        with self._lock:
            last = self._last_logged.get(key)
            if last is not None and now - last < self._window:
                self._suppressed[key] = self._suppressed.get(key, 0) + 1
                return None

            self._last_logged[key] = now
            return self._suppressed.pop(key, 0)


_deduplicator = ErrorDeduplicator()


def determine_severity(
    error: Exception,
    category: ErrorCategory,
) -> ErrorSeverity:
    """
    Determine the severity level for an error based on type and category.
    """
    message = str(error).lower()

    if category == ErrorCategory.SECURITY:
        if 'tamper' in message or 'integrity' in message:
            return ErrorSeverity.CRITICAL
        return ErrorSeverity.ERROR

    if category == ErrorCategory.AUTH:
        return ErrorSeverity.WARNING

    if isinstance(error, PermissionError):
        return ErrorSeverity.ERROR

    if isinstance(error, FileNotFoundError):
        return ErrorSeverity.WARNING

    return ErrorSeverity.ERROR


def handle_error(
    error: Exception,
    operation: str,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    severity: Optional[ErrorSeverity] = None,
    additional_context: Optional[Dict[str, Any]] = None,
    reraise: bool = False,
) -> ErrorContext:
    """
    Handle an error with logging and tracking.

    Args:
        error: The exception that occurred
        operation: Name of the operation that failed
        category: Category of the error
        severity: Severity level (auto-determined if not provided)
        additional_context: Additional context information
        reraise: Whether to re-raise the exception after handling

    Returns:
        ErrorContext with full error details
    """
    if severity is None:
        severity = determine_severity(error, category)

    context = ErrorContext(
        error=error,
        category=category,
        severity=severity,
        operation=operation,
        additional_context=additional_context or {},
    )

    repeats = _deduplicator.register(context)

    log_level = {
        ErrorSeverity.INFO: logging.INFO,
        ErrorSeverity.WARNING: logging.WARNING,
        ErrorSeverity.ERROR: logging.ERROR,
        ErrorSeverity.CRITICAL: logging.CRITICAL,
    }.get(severity, logging.ERROR)

    if repeats is not None:
        message = context.format_log_message()
        if repeats:
            message += f"\n  Repeated {repeats} times since last report"
        logger.log(log_level, message)
    else:
        logger.log(
            log_level,
            f"[DEDUPLICATED] {operation}: {type(error).__name__}: {error}"
        )

    if reraise:
        raise error

    return context


@contextmanager
def safe_execute(
    operation: str,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    default_return: Any = None,
    reraise: bool = False,
    additional_context: Optional[Dict[str, Any]] = None,
):
    """
    Context manager for safe execution with error handling.

    Usage:
        with safe_execute("removing temp file", ErrorCategory.FILESYSTEM) as result:
            os.unlink(temp_path)
        if not result.success:
            ...

    Args:
        operation: Name of the operation
        category: Error category
        default_return: Default value to return on error
        reraise: Whether to re-raise exceptions
        additional_context: Additional context information
    """
    class Result:
        def __init__(self):
            self.value = default_return
            self.error: Optional[ErrorContext] = None
            self.success = True

    result = Result()

    try:
        yield result
    except Exception as e:
        result.success = False
        result.error = handle_error(
            e,
            operation,
            category=category,
            additional_context=additional_context,
            reraise=reraise,
        )
        result.value = default_return


def log_security_error(
    error: Exception,
    operation: str,
    **context,
) -> ErrorContext:
    """Log a security-related error with critical severity."""
    return handle_error(
        error,
        operation,
        category=ErrorCategory.SECURITY,
        severity=ErrorSeverity.CRITICAL,
        additional_context=context,
    )


def log_filesystem_error(
    error: Exception,
    operation: str,
    **context,
) -> ErrorContext:
    """Log a filesystem error."""
    return handle_error(
        error,
        operation,
        category=ErrorCategory.FILESYSTEM,
        additional_context=context,
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
