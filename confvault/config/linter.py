"""
Configuration Linter - Validate confvault configuration state.

Catches values that will not work at runtime and persisted files that
are more exposed than they should be.

Usage:
    result = ConfigLinter().lint(config)
    print(result.summary())
    if result.fixable_count:
        ConfigLinter().fix_permissions(config, result)

Severity Levels:
    CRITICAL - Store cannot work as configured (malformed identifier)
    HIGH     - Security weakness (group/world accessible files)
    MEDIUM   - Potential issues (missing executables, out-of-range port)
    LOW      - Style/best practice warnings
"""

import logging
import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional

from ..constants import Permissions
from .application_config import UNIQUE_ID_PATTERN
from .backup import backup_path_for

if TYPE_CHECKING:
    from .application_config import ApplicationConfig

logger = logging.getLogger(__name__)

MAX_PORT = 65535


class LintSeverity(Enum):
    """Severity levels for lint findings."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LintCategory(Enum):
    """Categories of lint findings."""
    SECURITY = "security"
    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    NETWORK = "network"
    PATH = "path"
    CONSISTENCY = "consistency"


@dataclass
class LintFinding:
    """A single lint finding."""
    severity: LintSeverity
    category: LintCategory
    key: Optional[str]
    message: str
    suggestion: Optional[str] = None
    auto_fixable: bool = False
    path: Optional[str] = None

    def __str__(self) -> str:
        location = self.key or "file"
        return f"[{self.severity.value.upper()}] {location}: {self.message}"


@dataclass
class LintResult:
    """Result of linting operation."""
    findings: List[LintFinding] = field(default_factory=list)
    config_path: str = ""
    is_valid: bool = True

    @property
    def critical_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.CRITICAL)

    @property
    def high_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.HIGH)

    @property
    def medium_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.MEDIUM)

    @property
    def low_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.LOW)

    @property
    def fixable_count(self) -> int:
        return sum(1 for f in self.findings if f.auto_fixable)

    def summary(self) -> str:
        """Generate summary string."""
        if not self.findings:
            return "Configuration is valid"

        parts = []
        if self.critical_count:
            parts.append(f"{self.critical_count} critical")
        if self.high_count:
            parts.append(f"{self.high_count} high")
        if self.medium_count:
            parts.append(f"{self.medium_count} medium")
        if self.low_count:
            parts.append(f"{self.low_count} low")

        summary = f"Found {len(self.findings)} issues: " + ", ".join(parts)

        if self.high_count:
            summary += "\nConfiguration files are readable by other users"

        if self.fixable_count:
            summary += f"\n{self.fixable_count} issues can be fixed with fix_permissions()"

        return summary


class ConfigLinter:
    """
    Validates an ApplicationConfig and its persisted files.

    Checks for:
    - Malformed unique identifier
    - Logging enabled without a destination
    - Configured executables that do not exist
    - Port range
    - Permission issues on the configuration file and its backup
    """

    def __init__(self):
        self.validators: List[Callable[['ApplicationConfig', LintResult], None]] = [
            self._check_unique_id,
            self._check_logging,
            self._check_paths,
            self._check_port,
            self._check_file_permissions,
        ]

    def lint(self, config: 'ApplicationConfig') -> LintResult:
        """
        Lint a configuration store.

        Args:
            config: The store to check (its current in-memory fields)

        Returns:
            LintResult with all findings
        """
        result = LintResult(config_path=config.filename)

        for validator in self.validators:
            try:
                validator(config, result)
            except Exception as e:
                logger.warning(f"Validator {validator.__name__} failed: {e}")

        result.is_valid = result.critical_count == 0 and result.high_count == 0
        return result

    def _check_unique_id(self, config: 'ApplicationConfig', result: LintResult):
        unique_id = config.unique_configuration_id
        if unique_id and not UNIQUE_ID_PATTERN.match(unique_id):
            result.findings.append(LintFinding(
                severity=LintSeverity.CRITICAL,
                category=LintCategory.CONFIGURATION,
                key='UniqueConfigurationID',
                message="Unique configuration ID is not 64 lowercase hex characters",
                suggestion="Delete the configuration file to generate a new ID",
            ))

    def _check_logging(self, config: 'ApplicationConfig', result: LintResult):
        if config.logs_enabled and not config.raw_log_file:
            result.findings.append(LintFinding(
                severity=LintSeverity.MEDIUM,
                category=LintCategory.CONSISTENCY,
                key='RawLogFile',
                message="Logging is enabled but no log file is set",
                suggestion=f"Set RawLogFile (default: {config.get_raw_log_file()})",
            ))

    def _check_paths(self, config: 'ApplicationConfig', result: LintResult):
        for attr, key in (
            ('path_tor', 'PathTor'),
            ('path_torsocks', 'PathTorsocks'),
            ('path_mumble', 'PathMumble'),
            ('path_certificate', 'PathCertificate'),
        ):
            value = getattr(config, attr)
            if value and not os.path.exists(value):
                result.findings.append(LintFinding(
                    severity=LintSeverity.MEDIUM,
                    category=LintCategory.PATH,
                    key=key,
                    message=f"Configured path does not exist: {value}",
                    suggestion="Clear the value to fall back to auto-detection",
                ))

    def _check_port(self, config: 'ApplicationConfig', result: LintResult):
        port = config.mumble_port
        if port < 0 or port > MAX_PORT:
            result.findings.append(LintFinding(
                severity=LintSeverity.MEDIUM,
                category=LintCategory.NETWORK,
                key='PortMumble',
                message=f"Port {port} is outside 0-{MAX_PORT}",
                suggestion="Use 0 to pick a port automatically",
            ))
        elif 0 < port < 1024:
            result.findings.append(LintFinding(
                severity=LintSeverity.LOW,
                category=LintCategory.NETWORK,
                key='PortMumble',
                message=f"Port {port} is privileged and may need elevated rights",
            ))

    def _check_file_permissions(self, config: 'ApplicationConfig', result: LintResult):
        """Check that the persisted file and its backup are owner-only."""
        if not config.filename:
            return

        for path in (Path(config.filename), backup_path_for(config.filename)):
            try:
                mode = os.stat(path).st_mode
            except OSError:
                continue

            if stat.S_IMODE(mode) & Permissions.GROUP_OTHER_MASK:
                result.findings.append(LintFinding(
                    severity=LintSeverity.HIGH,
                    category=LintCategory.PERMISSION,
                    key=None,
                    message=f"File is accessible by group or others: {path} "
                            f"({oct(stat.S_IMODE(mode))})",
                    suggestion=f"chmod {oct(Permissions.SECURE_FILE)[2:]} {path}",
                    auto_fixable=True,
                    path=str(path),
                ))

    def fix_permissions(self, config: 'ApplicationConfig', result: Optional[LintResult] = None) -> int:
        """
        Restrict the modes of files flagged by lint().

        Returns:
            Number of files fixed
        """
        result = result or self.lint(config)
        fixed = 0
        for finding in result.findings:
            if not finding.auto_fixable or not finding.path:
                continue
            try:
                os.chmod(finding.path, config.options.file_mode)
                fixed += 1
                logger.info(f"Restricted permissions on {finding.path}")
            except OSError as e:
                logger.error(f"Could not fix permissions on {finding.path}: {e}")
        return fixed


def lint_config(config: 'ApplicationConfig') -> LintResult:
    """Convenience wrapper around ConfigLinter().lint()."""
    return ConfigLinter().lint(config)


__all__ = [
    'LintSeverity',
    'LintCategory',
    'LintFinding',
    'LintResult',
    'ConfigLinter',
    'lint_config',
]
