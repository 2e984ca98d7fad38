"""
Backup Guard - crash-safe file replacement and backup-before-overwrite.

Every write of a configuration file, and of its backup, goes through
atomic_write(): temp file in the same directory, fsync, chmod, rename.
A crash at any point leaves either the old bytes or the new bytes on
disk, never a mix.

The backup is a raw copy of the previously persisted file (ciphertext
included), stored next to it under a fixed suffix.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..constants import Files, Permissions
from ..errors import ConfigIOError
from ..utils.error_handling import ErrorCategory, log_filesystem_error, safe_execute

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def backup_path_for(path: PathLike) -> Path:
    """Sibling backup location for a configuration file."""
    path = Path(path)
    return path.with_name(path.name + Files.BACKUP_SUFFIX)


def _fsync_directory(directory: Path) -> None:
    # Directory fsync makes the rename itself durable; unsupported on Windows
    if os.name != 'posix':
        return
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write(
    path: PathLike,
    data: bytes,
    file_mode: int = Permissions.SECURE_FILE,
) -> None:
    """
    Write data to path atomically with secure permissions.

    Raises:
        ConfigIOError: the write failed; path is unchanged
    """
    path = Path(path)
    temp_path = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=Files.TEMP_PREFIX,
            suffix=Files.TEMP_SUFFIX,
        )
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, file_mode)
        os.replace(temp_path, path)
        temp_path = None

        _fsync_directory(path.parent)

    except OSError as e:
        log_filesystem_error(e, "atomic_write", path=str(path))
        raise ConfigIOError(f"failed to write {path}: {e}", path=str(path)) from e

    finally:
        if temp_path is not None:
            with safe_execute("remove_temp_file", ErrorCategory.FILESYSTEM):
                os.unlink(temp_path)


def create_backup(
    path: PathLike,
    file_mode: int = Permissions.SECURE_FILE,
) -> Optional[Path]:
    """
    Copy the current file aside before it is overwritten.

    Returns:
        The backup path, or None when there was nothing to back up

    Raises:
        ConfigIOError: the source exists but could not be copied
    """
    if not path:
        return None

    source = Path(path)
    if not source.is_file():
        return None

    try:
        contents = source.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        log_filesystem_error(e, "create_backup", path=str(source))
        raise ConfigIOError(f"failed to read {source} for backup: {e}", path=str(source)) from e

    backup = backup_path_for(source)
    atomic_write(backup, contents, file_mode)
    logger.debug(f"Backed up configuration to {backup}")
    return backup


def restore_backup(
    path: PathLike,
    file_mode: int = Permissions.SECURE_FILE,
) -> bool:
    """
    Put the backup back in place of path.

    Returns:
        True if a backup was restored, False if none exists
    """
    target = Path(path)
    backup = backup_path_for(target)

    try:
        contents = backup.read_bytes()
    except FileNotFoundError:
        return False
    except OSError as e:
        log_filesystem_error(e, "restore_backup", path=str(backup))
        raise ConfigIOError(f"failed to read backup {backup}: {e}", path=str(backup)) from e

    atomic_write(target, contents, file_mode)
    logger.info(f"Restored configuration from backup {backup}")
    return True


__all__ = [
    'backup_path_for',
    'atomic_write',
    'create_backup',
    'restore_backup',
]
