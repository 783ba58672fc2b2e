"""Persistent configuration store.

Owns the root configuration document (config.json) and its backup
(config.json.bak).

- Load: primary, then backup, then defaults. Always ends with a usable
  snapshot; recovery from backup or defaults is re-persisted immediately.
- Save: previous primary bytes are copied to the backup first (best effort),
  then the new document is written atomically.
- Mutations replace the whole snapshot, notify subscribers synchronously and
  schedule a debounced write. `flush()` writes immediately.

The store expects a single logical caller. Each write is atomic, but
concurrent mutation calls from several threads are not serialized here.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from pydantic import ValidationError

from .constants import ConfigPaths, SAVE_DEBOUNCE_SECONDS
from .errors import BackupError, ConfigLoadError, ConfigWriteError, DeskModesError, StoreCorruptError
from .events import ChangeChannel, Subscription
from .fileio import atomic_write_bytes
from .models import AppConfig, AppEntry, ModeConfig
from .scheduler import AsyncioCoalescingScheduler, CoalescingScheduler

logger = logging.getLogger(__name__)


class ConfigStore:
    """Configuration snapshot plus durable, debounced persistence."""

    def __init__(
        self,
        config_file: Optional[Path] = None,
        backup_file: Optional[Path] = None,
        scheduler: Optional[CoalescingScheduler] = None,
        debounce_seconds: float = SAVE_DEBOUNCE_SECONDS,
    ):
        """
        Initialize the store. Call `load()` before use.

        Args:
            config_file: Primary document (default: ConfigPaths.CONFIG_FILE)
            backup_file: Backup document (default: ConfigPaths.BACKUP_FILE)
            scheduler: Debounce scheduler (default: asyncio based)
            debounce_seconds: Delay before a scheduled write fires
        """
        self.config_file = config_file or ConfigPaths.CONFIG_FILE
        self.backup_file = backup_file or self.config_file.with_name(self.config_file.name + ".bak")
        self.debounce_seconds = debounce_seconds
        self._scheduler = scheduler or AsyncioCoalescingScheduler()
        self._config = AppConfig.default()
        self.changes: ChangeChannel[AppConfig] = ChangeChannel("config")
        self.save_count = 0
        self.last_error: Optional[DeskModesError] = None

    # Snapshot access

    @property
    def config(self) -> AppConfig:
        return self._config

    def get_mode(self, mode_id: str) -> Optional[ModeConfig]:
        return self._config.get_mode(mode_id)

    def find_mode(self, name_or_id: str) -> Optional[ModeConfig]:
        return self._config.find_mode(name_or_id)

    def subscribe(self, callback: Callable[[AppConfig], None]) -> Subscription:
        """Register for change notifications. Returns an unsubscribe handle."""
        return self.changes.subscribe(callback)

    # Loading

    def load(self) -> AppConfig:
        """Load configuration from disk, recovering from backup or defaults."""
        if not self.config_file.exists():
            logger.info(f"No config file found at {self.config_file}, using defaults")
            self._set(AppConfig.default())
            self._save(create_backup=False)
            return self._config

        try:
            config = self._parse(self.config_file)
        except (OSError, ValueError) as e:
            self._report(ConfigLoadError(str(self.config_file), str(e)))
            return self._load_backup(str(e))

        self._set(config)
        logger.info(f"Config loaded: {len(config.modes)} mode(s), "
                    f"{len(config.global_allow_list)} always-open app(s)")
        return self._config

    def _load_backup(self, primary_reason: str) -> AppConfig:
        if not self.backup_file.exists():
            logger.warning(f"No backup found at {self.backup_file}, using defaults")
            self._set(AppConfig.default())
            self._save(create_backup=False)
            return self._config

        try:
            config = self._parse(self.backup_file)
        except (OSError, ValueError) as e:
            error = StoreCorruptError(str(self.config_file), str(self.backup_file), f"{primary_reason}; {e}")
            self._report(error)
            logger.warning("Falling back to default configuration")
            self._set(AppConfig.default())
            self._save(create_backup=False)
            return self._config

        logger.info(f"Config loaded from backup {self.backup_file}")
        self._set(config)
        # Re-persist as primary; the corrupt primary must not overwrite the good backup
        self._save(create_backup=False)
        return self._config

    @staticmethod
    def _parse(path: Path) -> AppConfig:
        """
        Parse a configuration document.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the JSON or the schema is invalid
        """
        try:
            data = json.loads(path.read_text())
        except UnicodeDecodeError as e:
            raise ValueError(f"Not a text document: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        try:
            return AppConfig.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.error_count()} error(s): {e}") from e

    # Saving

    def flush(self) -> bool:
        """Cancel any pending debounced write and save now."""
        self._scheduler.cancel()
        return self._save()

    def close(self) -> None:
        """Write out a pending debounced save, if any."""
        if self._scheduler.pending:
            self.flush()

    def _save(self, create_backup: bool = True) -> bool:
        if create_backup and self.config_file.exists():
            try:
                atomic_write_bytes(self.backup_file, self.config_file.read_bytes(), prefix=".config-bak-")
            except OSError as e:
                self._report(BackupError(str(self.backup_file), str(e)), logging.WARNING)

        try:
            payload = json.dumps(self._config.to_document(), indent=2, sort_keys=True) + "\n"
            atomic_write_bytes(self.config_file, payload.encode("utf-8"), prefix=".config-")
        except (OSError, TypeError, ValueError) as e:
            self._report(ConfigWriteError(str(self.config_file), str(e)))
            return False

        self.save_count += 1
        logger.debug(f"Config saved to {self.config_file}")
        return True

    def _report(self, error: DeskModesError, level: int = logging.ERROR) -> None:
        self.last_error = error
        logger.log(level, error.message)

    # Snapshot replacement

    def _set(self, config: AppConfig) -> None:
        self._config = config
        self.changes.publish(config)

    def _replace(self, config: AppConfig) -> None:
        self._set(config)
        self._scheduler.schedule(self.debounce_seconds, self._save)

    def _updated(self, **updates: Any) -> AppConfig:
        """Copy of the snapshot with `updates` applied and re-validated."""
        data = self._config.model_dump()
        data.update(updates)
        return AppConfig.model_validate(data)

    # Mode operations

    def add_mode(self, mode: ModeConfig) -> None:
        if self._config.get_mode(mode.id) is not None:
            raise ValueError(f"Mode id already exists: {mode.id}")
        self._replace(self._config.model_copy(update={"modes": (*self._config.modes, mode)}))
        logger.info(f"Added mode: {mode.name}")

    def update_mode(self, mode: ModeConfig) -> None:
        """Replace the mode with the same id. Unknown ids are ignored."""
        modes = list(self._config.modes)
        for index, existing in enumerate(modes):
            if existing.id == mode.id:
                modes[index] = mode
                self._replace(self._config.model_copy(update={"modes": tuple(modes)}))
                logger.info(f"Updated mode: {mode.name}")
                return
        logger.warning(f"Cannot update unknown mode: {mode.id}")

    def delete_mode(self, mode_id: str) -> None:
        modes = [m for m in self._config.modes if m.id != mode_id]
        if len(modes) == len(self._config.modes):
            logger.warning(f"Cannot delete unknown mode: {mode_id}")
            return
        self._replace(self._config.model_copy(update={"modes": tuple(modes)}))
        logger.info(f"Deleted mode: {mode_id}")

    def reorder_modes(self, from_index: int, to_index: int) -> None:
        """Move the mode at `from_index` so that it ends up at `to_index`.

        Raises:
            IndexError: If either index is out of range
        """
        modes: List[ModeConfig] = list(self._config.modes)
        if not (0 <= from_index < len(modes)) or not (0 <= to_index < len(modes)):
            raise IndexError(f"Cannot move mode {from_index} -> {to_index} among {len(modes)} mode(s)")
        mode = modes.pop(from_index)
        modes.insert(to_index, mode)
        self._replace(self._config.model_copy(update={"modes": tuple(modes)}))

    # Global allow list operations

    def add_to_global_allow_list(self, app: AppEntry) -> None:
        if any(a.key == app.key for a in self._config.global_allow_list):
            return
        self._replace(self._config.model_copy(
            update={"global_allow_list": (*self._config.global_allow_list, app)}
        ))

    def remove_from_global_allow_list(self, bundle_id: str) -> None:
        key = bundle_id.lower()
        apps = [a for a in self._config.global_allow_list if a.key != key]
        if len(apps) == len(self._config.global_allow_list):
            return
        self._replace(self._config.model_copy(update={"global_allow_list": tuple(apps)}))

    def update_global_allow_list(self, apps: Iterable[AppEntry]) -> None:
        self._replace(self._config.model_copy(update={"global_allow_list": tuple(apps)}))

    # Behavior flags

    def update_settings(self, **settings: Any) -> None:
        """Update behavior flags by field name (e.g., force_close_apps=True).

        Raises:
            ValueError: If a value fails validation or the field is unknown
        """
        allowed = {
            "force_close_apps", "enable_reapply_shortcut", "enable_auto_reapply",
            "auto_reapply_interval", "mode_switcher_key", "mode_switcher_shortcut",
            "reapply_shortcut",
        }
        unknown = set(settings) - allowed
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        self._replace(self._updated(**settings))

    def replace(self, config: AppConfig) -> None:
        """Replace the whole configuration."""
        self._replace(config)
