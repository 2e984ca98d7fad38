"""
Application Configuration - encrypted, state-gated configuration store.

Lifecycle:
    config = ApplicationConfig()
    config.init()
    config.init_default()
    path = config.detect_persistence()
    result = config.load_from_file(path, key_manager)
    if result.repeat:
        ...  # wrong secret, prompt again
    result.raise_for_error()
    config.when_saved(lambda: print("saved"))
    config.auto_join = False
    config.save(key_manager)

Load and save are refused until init() has run, and save is refused until
a configuration file has been detected or enabled. A wrong secret during
load is reported through LoadResult (invalid/repeat) and never modifies
fields. Save backs up the previous file, then replaces it atomically.

SECURITY: The persisted file holds identifiers and local paths of a
privacy tool. It is only ever written encrypted, with owner-only
permissions.
"""

import logging
import os
import re
import secrets
import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..constants import Crypto, Files, Paths, Permissions
from ..crypto.key_manager import (
    EncryptionParameters,
    KeyManager,
    compute_key_check,
)
from ..errors import (
    AuthenticationMismatch,
    ConfigError,
    ConfigIOError,
    DecodeError,
    InitializationError,
    KeyManagerError,
    PersistenceNotConfiguredError,
)
from ..utils.error_handling import (
    handle_error,
    log_filesystem_error,
    log_security_error,
)
from .backup import atomic_write, backup_path_for, create_backup, restore_backup
from .codec import ConfigCodec
from .hooks import HookQueue

logger = logging.getLogger(__name__)

UNIQUE_ID_PATTERN = re.compile(r'^[0-9a-f]{64}$')

# attribute -> (JSON key, type)
PERSISTED_FIELDS: Dict[str, Tuple[str, type]] = {
    'unique_configuration_id': ('UniqueConfigurationID', str),
    'auto_join': ('AutoJoin', bool),
    'as_super_user': ('AsSuperUser', bool),
    'logs_enabled': ('LogsEnabled', bool),
    'raw_log_file': ('RawLogFile', str),
    'path_tor': ('PathTor', str),
    'path_torsocks': ('PathTorsocks', str),
    'path_mumble': ('PathMumble', str),
    'path_certificate': ('PathCertificate', str),
    'mumble_port': ('PortMumble', int),
}


@dataclass
class StoreOptions:
    """Per-store persistence settings."""
    config_filename: str = Files.CONFIG_FILE
    file_mode: int = Permissions.SECURE_FILE
    dir_mode: int = Permissions.SECURE_DIR

    # Backup of the previous file before every save
    create_backup: bool = True

    # Key derivation for newly created files
    kdf: str = Crypto.DEFAULT_KDF
    kdf_iterations: int = Crypto.PBKDF2_ITERATIONS
    scrypt_n: int = Crypto.SCRYPT_N


class LoadStatus(Enum):
    """Outcome of ApplicationConfig.load_from_file."""
    LOADED = "loaded"
    NOTHING_TO_LOAD = "nothing_to_load"
    RETRY_NEEDED = "retry_needed"
    FATAL = "fatal"


@dataclass(frozen=True)
class LoadResult:
    """
    Tagged result of a load.

    invalid and repeat are coupled: both are True exactly when the secret
    did not open the file and the caller should prompt again.
    """
    status: LoadStatus
    error: Optional[ConfigError] = None

    @classmethod
    def loaded(cls) -> 'LoadResult':
        return cls(LoadStatus.LOADED)

    @classmethod
    def nothing_to_load(cls) -> 'LoadResult':
        return cls(LoadStatus.NOTHING_TO_LOAD)

    @classmethod
    def retry_needed(cls) -> 'LoadResult':
        return cls(LoadStatus.RETRY_NEEDED)

    @classmethod
    def fatal(cls, error: ConfigError) -> 'LoadResult':
        return cls(LoadStatus.FATAL, error)

    @property
    def invalid(self) -> bool:
        return self.status is LoadStatus.RETRY_NEEDED

    @property
    def repeat(self) -> bool:
        return self.invalid

    @property
    def ok(self) -> bool:
        return self.status in (LoadStatus.LOADED, LoadStatus.NOTHING_TO_LOAD)

    def as_tuple(self) -> Tuple[bool, bool, Optional[ConfigError]]:
        return self.invalid, self.repeat, self.error

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class ApplicationConfig:
    """
    Owns the application's persisted preferences.

    One instance is expected per application run. Load, save, delete and
    backup restore are serialized under a single re-entrant lock, so a hook
    may call save() from inside a drain.
    """

    def __init__(
        self,
        search_dirs: Optional[Sequence[Union[str, Path]]] = None,
        options: Optional[StoreOptions] = None,
        codec: Optional[ConfigCodec] = None,
    ):
        """
        Args:
            search_dirs: Directories searched by detect_persistence
                        (defaults to the well-known locations)
            options: Persistence settings
            codec: Envelope codec
        """
        self.options = options or StoreOptions()
        self._search_dirs = [Path(d) for d in search_dirs] if search_dirs is not None else None
        self._codec = codec or ConfigCodec()

        self._initialized = False
        self._persistent_mode = False
        self.filename = ""
        self._params: Optional[EncryptionParameters] = None
        self._io_lock = threading.RLock()

        self._after_load = HookQueue("after_load")
        self._after_save = HookQueue("after_save")

        self.unique_configuration_id = ""
        self.auto_join = False
        self.as_super_user = False
        self.logs_enabled = False
        self.raw_log_file = ""
        self.path_tor = ""
        self.path_torsocks = ""
        self.path_mumble = ""
        self.path_certificate = ""
        self.mumble_port = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def persistent_mode(self) -> bool:
        return self._persistent_mode

    @property
    def search_dirs(self) -> List[Path]:
        if self._search_dirs is not None:
            return list(self._search_dirs)
        return Paths.config_dirs()

    def init(self) -> None:
        """Enable load/save."""
        self._initialized = True

    def init_default(self) -> None:
        """Populate baseline field values."""
        dirs = self.search_dirs
        self.auto_join = True
        self.as_super_user = True
        self.logs_enabled = False
        self.raw_log_file = Paths.default_log_file(dirs[0] if dirs else None)
        self.path_tor = ""
        self.path_torsocks = ""
        self.path_mumble = ""
        self.path_certificate = ""
        self.mumble_port = 0

    def is_persistent(self) -> bool:
        return self._persistent_mode

    # ------------------------------------------------------------------
    # Unique identifier
    # ------------------------------------------------------------------

    def _gen_unique_id(self) -> None:
        self.unique_configuration_id = secrets.token_bytes(Crypto.UNIQUE_ID_BYTES).hex()

    def get_unique_id(self) -> str:
        if not self.unique_configuration_id:
            self._gen_unique_id()
        return self.unique_configuration_id

    def _on_before_save(self) -> None:
        self.get_unique_id()

    # ------------------------------------------------------------------
    # Field (de)serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for attr, (key, _) in PERSISTED_FIELDS.items()}

    def _validate_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Check every known key before anything is applied."""
        updates = {}
        for attr, (key, expected) in PERSISTED_FIELDS.items():
            if key not in data:
                continue
            value = data[key]
            if expected is int:
                valid = isinstance(value, int) and not isinstance(value, bool)
            else:
                valid = isinstance(value, expected)
            if not valid:
                raise DecodeError(
                    f"configuration field '{key}' must be {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
            updates[attr] = value

        unique_id = updates.get('unique_configuration_id')
        if unique_id and not UNIQUE_ID_PATTERN.match(unique_id):
            raise DecodeError("configuration field 'UniqueConfigurationID' is malformed")

        return updates

    def _apply_fields(self, updates: Dict[str, Any]) -> None:
        unique_id = updates.pop('unique_configuration_id', "")
        if unique_id:
            if not self.unique_configuration_id:
                self.unique_configuration_id = unique_id
            elif self.unique_configuration_id != unique_id:
                logger.warning("Keeping existing unique configuration ID; persisted ID differs")

        for attr, value in updates.items():
            setattr(self, attr, value)

    def apply_dict(self, data: Dict[str, Any]) -> None:
        """Validate and apply a persisted-field dictionary."""
        self._apply_fields(self._validate_fields(data))

    # ------------------------------------------------------------------
    # Persistence detection
    # ------------------------------------------------------------------

    def detect_persistence(self) -> str:
        """
        Look for an existing configuration file in the well-known locations.

        Returns:
            The file path, or "" when none exists (not an error)

        Raises:
            ConfigIOError: a candidate exists but is not a regular file
        """
        with self._io_lock:
            for directory in self.search_dirs:
                candidate = directory / self.options.config_filename
                if not candidate.exists():
                    continue
                if not candidate.is_file():
                    raise ConfigIOError(
                        f"configuration path is not a regular file: {candidate}",
                        path=str(candidate),
                    )
                self.filename = str(candidate)
                self._persistent_mode = True
                logger.info(f"Found persisted configuration at {candidate}")
                return self.filename

            self.filename = ""
            self._persistent_mode = False
            logger.debug("No persisted configuration found")
            return ""

    def enable_persistence(self, filename: Optional[Union[str, Path]] = None) -> str:
        """
        Turn on persistent mode so the next save() creates the file.

        Args:
            filename: Target file (defaults to the first search directory)
        """
        with self._io_lock:
            if filename is None:
                dirs = self.search_dirs
                if not dirs:
                    raise PersistenceNotConfiguredError("no configuration directory available")
                filename = dirs[0] / self.options.config_filename
            self.filename = str(filename)
            self._persistent_mode = True
            return self.filename

    def disable_persistence(self) -> None:
        """Delete the persisted file and its backup and stop persisting."""
        with self._io_lock:
            if self.filename:
                self.delete_file_if_exists()
                self._remove_if_exists(backup_path_for(self.filename))
            self.filename = ""
            self._persistent_mode = False
            self._params = None

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_from_file(
        self,
        filename: Union[str, Path],
        key_manager: Optional[KeyManager],
    ) -> LoadResult:
        """
        Read, verify and apply a persisted configuration.

        Returns:
            LoadResult.loaded() on success (after-load hooks have run),
            nothing_to_load() when persistence is off,
            retry_needed() when the secret did not open the file,
            fatal(error) for anything else. Fields change only on success.
        """
        if not self._initialized:
            return LoadResult.fatal(InitializationError())

        if not self._persistent_mode:
            return LoadResult.nothing_to_load()

        with self._io_lock:
            path = Path(filename)
            try:
                raw = path.read_bytes()
            except OSError as e:
                log_filesystem_error(e, "load_config", path=str(path))
                return LoadResult.fatal(ConfigIOError(f"failed to read {path}: {e}", path=str(path)))

            try:
                if key_manager is None:
                    raise KeyManagerError("a key manager is required to open an encrypted configuration")

                envelope = self._codec.read_envelope(raw)
                result = key_manager.generate_key(envelope.params)
                if not result.valid:
                    raise AuthenticationMismatch("derived key does not match the stored key check")

                fields = self._codec.decrypt(envelope, result)
                updates = self._validate_fields(fields)
                key_manager.cache_from_result(result)

            except AuthenticationMismatch:
                key_manager.last_attempt_failed()
                logger.warning(f"Could not unlock configuration {path}")
                return LoadResult.retry_needed()

            except ConfigError as e:
                handle_error(e, "load_config", category=e.category, additional_context={'path': str(path)})
                return LoadResult.fatal(e)

            self.filename = str(path)
            self._params = envelope.params
            self._apply_fields(updates)
            logger.info(f"Loaded configuration from {path}")

            self.on_after_load()
            return LoadResult.loaded()

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def _ensure_config_dir(self, path: Path) -> None:
        try:
            if not path.parent.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                os.chmod(path.parent, self.options.dir_mode)
        except OSError as e:
            log_filesystem_error(e, "create_config_dir", path=str(path.parent))
            raise ConfigIOError(f"failed to create {path.parent}: {e}", path=str(path.parent)) from e

    def save(self, key_manager: KeyManager) -> None:
        """
        Encrypt and persist the current fields.

        Raises:
            InitializationError: init() has not run
            PersistenceNotConfiguredError: no file detected or enabled
            AuthenticationMismatch: the key manager's secret does not match the file
            KeyManagerError: no key material could be obtained
            ConfigIOError: backup or write failed; the previous file is intact
        """
        if not self._initialized:
            raise InitializationError()

        if not self._persistent_mode or not self.filename:
            raise PersistenceNotConfiguredError()

        with self._io_lock:
            path = Path(self.filename)
            self._on_before_save()

            if self.options.create_backup:
                create_backup(path, self.options.file_mode)

            params = self._params or EncryptionParameters.generate(
                kdf=self.options.kdf,
                iterations=self.options.kdf_iterations,
                n=self.options.scrypt_n,
            )
            result = key_manager.generate_key(params)
            if not result.valid:
                key_manager.last_attempt_failed()
                error = AuthenticationMismatch("secret does not match the persisted configuration")
                log_security_error(error, "save_config", path=str(path))
                raise error

            sealed_params = params.with_check(compute_key_check(result.mac))
            data = self._codec.encrypt(self.to_dict(), result, sealed_params)

            self._ensure_config_dir(path)
            atomic_write(path, data, self.options.file_mode)

            key_manager.cache_from_result(replace(result, params=sealed_params))
            self._params = sealed_params
            logger.info(f"Saved configuration to {path}")

            self._on_after_save()

    def change_secret(self, key_manager: KeyManager) -> None:
        """
        Re-encrypt the configuration under a fresh salt.

        The key manager cache is dropped first, so the secret it supplies
        next becomes the new one.
        """
        with self._io_lock:
            key_manager.invalidate()
            self._params = None
            self.save(key_manager)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def create_backup(self) -> Optional[Path]:
        """Copy the persisted file aside; None if there is no file."""
        with self._io_lock:
            return create_backup(self.filename, self.options.file_mode)

    def restore_from_backup(self) -> bool:
        """
        Replace the persisted file with its backup.

        Returns:
            True if a backup was restored
        """
        with self._io_lock:
            if not self.filename:
                return False
            restored = restore_backup(self.filename, self.options.file_mode)
            if restored:
                self._params = None
            return restored

    @staticmethod
    def _remove_if_exists(path: Union[str, Path]) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            log_filesystem_error(e, "delete_config", path=str(path))
            raise ConfigIOError(f"failed to delete {path}: {e}", path=str(path)) from e

    def delete_file_if_exists(self) -> None:
        """Remove the persisted file; a missing file is not an error."""
        with self._io_lock:
            if not self.filename:
                return
            self._remove_if_exists(self.filename)

    def get_raw_log_file(self) -> str:
        if self.raw_log_file:
            return self.raw_log_file
        dirs = self.search_dirs
        return Paths.default_log_file(dirs[0] if dirs else None)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def when_loaded(self, callback: Callable[['ApplicationConfig'], None]) -> None:
        """Run callback once, after the next successful load."""
        self._after_load.append(callback)

    def when_saved(self, callback: Callable[[], None]) -> None:
        """Run callback once, after the next successful save."""
        self._after_save.append(callback)

    @property
    def after_load(self) -> HookQueue:
        return self._after_load

    @property
    def after_save(self) -> HookQueue:
        return self._after_save

    def on_after_load(self) -> None:
        self._after_load.drain(self)

    def _on_after_save(self) -> None:
        self._after_save.drain()


__all__ = [
    'PERSISTED_FIELDS',
    'StoreOptions',
    'LoadStatus',
    'LoadResult',
    'ApplicationConfig',
]
