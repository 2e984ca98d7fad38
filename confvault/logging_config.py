"""
Logging Configuration for confvault.

Provides centralized logging configuration with a verbose toggle and
text or JSON-lines formatting. Library modules only ever call
``logging.getLogger(__name__)``; the embedding application decides where
records go by calling ``setup_logging`` once at startup.

Usage:
    from confvault.logging_config import setup_logging, get_logger, set_verbose

    # Setup at application startup
    setup_logging(verbose=True)

    logger = get_logger('confvault.config')
    logger.info("Configuration loaded", extra={'extra_data': {'path': path}})

    # Toggle verbose mode at runtime
    set_verbose(True)

SECURITY: Secrets, derived keys and decrypted payloads are never passed to
a logger by this package. Keep it that way in callbacks too.
"""

import os
import sys
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class LogLevel(Enum):
    """Extended logging levels."""
    DEBUG = 10
    VERBOSE = 15    # Verbose operational info
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50
    SECURITY = 55   # Security-relevant events (always logged)


logging.addLevelName(LogLevel.VERBOSE.value, 'VERBOSE')
logging.addLevelName(LogLevel.SECURITY.value, 'SECURITY')


@dataclass
class LoggingState:
    """Thread-safe logging configuration state."""
    verbose: bool = False
    log_file: Optional[str] = None
    console_enabled: bool = True
    json_format: bool = False
    initialized: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock)


_state = LoggingState()


class ConfigFormatter(logging.Formatter):
    """Formatter with color support and optional JSON-lines output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'VERBOSE': '\033[94m',    # Light blue
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'SECURITY': '\033[35;1m', # Bold magenta
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stdout.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            level_str = f"{color}{level_name:8}{reset}"
        else:
            level_str = f"{level_name:8}"

        component = f"[{self._extract_component(record.name)}]"
        msg = record.getMessage()

        extra_str = ""
        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            extra_items = [f"{k}={v}" for k, v in extra_data.items()]
            extra_str = f" | {', '.join(extra_items)}"

        text = f"{timestamp} {level_str} {component:12} {msg}{extra_str}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text

    def _format_json(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            'timestamp': datetime.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'component': self._extract_component(record.name),
        }

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            data['extra'] = extra_data

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)

    def _extract_component(self, logger_name: str) -> str:
        """confvault.config.codec -> config"""
        parts = logger_name.split('.')
        if len(parts) >= 2 and parts[0] == 'confvault':
            return parts[1]
        return parts[0] if parts and parts[0] else 'core'


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Initialize the logging system.

    Args:
        verbose: Enable verbose logging (VERBOSE level)
        log_file: Optional file path for log output
        console: Enable console output
        json_format: Use JSON format for logs
    """
    with _state._lock:
        _state.verbose = verbose
        _state.log_file = log_file
        _state.console_enabled = console
        _state.json_format = json_format

        base_level = LogLevel.VERBOSE.value if verbose else logging.INFO

        root = logging.getLogger('confvault')
        root.setLevel(base_level)

        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(base_level)
            console_handler.setFormatter(ConfigFormatter(
                use_colors=True,
                json_format=json_format,
            ))
            root.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(base_level)
            file_handler.setFormatter(ConfigFormatter(
                use_colors=False,
                json_format=json_format,
            ))
            root.addHandler(file_handler)

        _state.initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the confvault hierarchy."""
    if name != 'confvault' and not name.startswith('confvault.'):
        name = f"confvault.{name}"
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Toggle verbose mode at runtime."""
    with _state._lock:
        _state.verbose = enabled
        level = LogLevel.VERBOSE.value if enabled else logging.INFO

        root = logging.getLogger('confvault')
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)


def is_verbose() -> bool:
    with _state._lock:
        return _state.verbose


def get_logging_state() -> Dict[str, Any]:
    """Get current logging configuration state."""
    with _state._lock:
        return {
            'verbose': _state.verbose,
            'log_file': _state.log_file,
            'console_enabled': _state.console_enabled,
            'json_format': _state.json_format,
            'initialized': _state.initialized,
        }


def configure_from_environment() -> None:
    """Configure logging from CONFVAULT_* environment variables."""
    def _flag(name: str) -> bool:
        return os.environ.get(name, '').lower() in ('1', 'true', 'yes')

    setup_logging(
        verbose=_flag('CONFVAULT_VERBOSE'),
        log_file=os.environ.get('CONFVAULT_LOG_FILE'),
        console=not _flag('CONFVAULT_LOG_NO_CONSOLE'),
        json_format=_flag('CONFVAULT_LOG_JSON'),
    )


__all__ = [
    'LogLevel',
    'ConfigFormatter',
    'setup_logging',
    'configure_from_environment',
    'get_logger',
    'set_verbose',
    'is_verbose',
    'get_logging_state',
]
