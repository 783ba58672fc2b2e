"""Centralized paths and tunables for DeskModes.

Single source of truth for every file path the core touches. The
configuration directory can be redirected with DESKMODES_CONFIG_DIR.
"""

import os
from pathlib import Path
from typing import Final, Tuple


def _config_dir() -> Path:
    override = os.environ.get("DESKMODES_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / "Library" / "Application Support" / "DeskModes"


class ConfigPaths:
    """Centralized configuration paths.

    Example:
        from .constants import ConfigPaths

        store = ConfigStore(ConfigPaths.CONFIG_FILE, ConfigPaths.BACKUP_FILE)
    """

    HOME: Final[Path] = Path.home()
    CONFIG_DIR: Final[Path] = _config_dir()

    CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.json"
    BACKUP_FILE: Final[Path] = CONFIG_DIR / "config.json.bak"

    # Owned by the Dock; only the persistent-apps list is replaced
    DOCK_PLIST: Final[Path] = HOME / "Library" / "Preferences" / "com.apple.dock.plist"

    APPLICATION_DIRS: Final[Tuple[Path, ...]] = (
        Path("/Applications"),
        Path("/System/Applications"),
        Path("/System/Applications/Utilities"),
        HOME / "Applications",
    )


CONFIG_SCHEMA_VERSION: Final[int] = 1

SAVE_DEBOUNCE_SECONDS: Final[float] = 0.5

DEFAULT_AUTO_REAPPLY_MINUTES: Final[int] = 15

SAFE_CLOSE_REFUSED_REASON: Final[str] = "App may have unsaved changes or refused to quit"
