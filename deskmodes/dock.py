"""Dock synchronization.

Mirrors an ordered list of applications into the Dock's pinned items
(`persistent-apps` in com.apple.dock.plist), then restarts the Dock so it
picks the change up.

- Apps that cannot be resolved to an installed bundle are skipped with a
  warning; the call still succeeds with the rest.
- If the document cannot be read or written, nothing is changed and the Dock
  is not restarted.
- The same resolved app list always produces a byte-identical document. Every
  successful call restarts the Dock, so avoid redundant calls.

Callers must not run `set_apps` concurrently; there is no locking here.
"""

import logging
import os
import plistlib
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .adapters.bundles import BundleLocator
from .constants import ConfigPaths
from .errors import DeskModesError, ShellRestartError, SyncReadError, SyncWriteError
from .fileio import atomic_write_bytes
from .models import AppEntry, dedupe_apps

logger = logging.getLogger(__name__)

PERSISTENT_APPS_KEY = "persistent-apps"

# Values the Dock itself writes for application tiles
CFURL_STRING_TYPE = 15
FILE_TYPE_APPLICATION = 41


class DockSynchronizer:
    """Replaces the Dock's pinned application list."""

    def __init__(
        self,
        plist_path: Optional[Path] = None,
        locator: Optional[BundleLocator] = None,
        restart_command: Optional[Sequence[str]] = ("killall", "Dock"),
    ):
        """
        Args:
            plist_path: Dock preferences document (default: ConfigPaths.DOCK_PLIST)
            locator: Resolves bundle ids to installed bundles
            restart_command: Command that restarts the Dock; None disables restarts
        """
        self.plist_path = plist_path or ConfigPaths.DOCK_PLIST
        self.locator = locator or BundleLocator()
        self.restart_command = list(restart_command) if restart_command else None
        self.restart_count = 0
        self.last_error: Optional[DeskModesError] = None

    @property
    def is_available(self) -> bool:
        """Whether the Dock document exists and is readable and writable."""
        return (
            self.plist_path.exists()
            and os.access(self.plist_path, os.R_OK)
            and os.access(self.plist_path, os.W_OK)
        )

    def read_document(self) -> Optional[bytes]:
        """Raw bytes of the current Dock document, or None if unreadable."""
        try:
            data = self.plist_path.read_bytes()
        except OSError as e:
            self._report(SyncReadError(str(self.plist_path), str(e)))
            return None
        logger.info(f"Read Dock configuration ({len(data)} bytes)")
        return data

    def _parse(self, data: bytes) -> Optional[Dict[str, Any]]:
        try:
            plist = plistlib.loads(data)
        except Exception as e:
            self._report(SyncReadError(str(self.plist_path), f"invalid plist: {e}"))
            return None
        if not isinstance(plist, dict):
            self._report(SyncReadError(str(self.plist_path), "top level is not a dictionary"))
            return None
        return plist

    def persistent_app_ids(self) -> List[str]:
        """Bundle ids of the apps currently pinned to the Dock, in order."""
        data = self.read_document()
        plist = self._parse(data) if data is not None else None
        if plist is None:
            return []

        bundle_ids = []
        for tile in plist.get(PERSISTENT_APPS_KEY, []):
            tile_data = tile.get("tile-data", {}) if isinstance(tile, dict) else {}
            bundle_id = tile_data.get("bundle-identifier")
            if isinstance(bundle_id, str):
                bundle_ids.append(bundle_id)
        return bundle_ids

    def set_apps(self, apps: List[AppEntry]) -> bool:
        """Pin exactly `apps` (in order) to the Dock and restart it."""
        logger.info(f"Setting Dock apps: {', '.join(a.name for a in apps)}")

        data = self.read_document()
        if data is None:
            return False
        plist = self._parse(data)
        if plist is None:
            return False

        tiles = []
        for app in dedupe_apps(apps):
            tile = self._tile_for(app)
            if tile is not None:
                tiles.append(tile)
        plist[PERSISTENT_APPS_KEY] = tiles

        try:
            new_data = plistlib.dumps(plist, fmt=plistlib.FMT_BINARY, sort_keys=True)
            atomic_write_bytes(self.plist_path, new_data, prefix=".dock-")
        except (OSError, TypeError, ValueError, OverflowError) as e:
            self._report(SyncWriteError(str(self.plist_path), str(e)))
            return False

        logger.info(f"Wrote Dock with {len(tiles)} apps")
        self.restart_shell()
        return True

    def restore(self, previous: bytes, restart: bool = True) -> bool:
        """Write back an exact earlier snapshot of the Dock document."""
        try:
            atomic_write_bytes(self.plist_path, previous, prefix=".dock-")
        except OSError as e:
            self._report(SyncWriteError(str(self.plist_path), str(e)))
            return False

        logger.info(f"Wrote Dock configuration ({len(previous)} bytes)")
        if restart:
            self.restart_shell()
        return True

    def restart_shell(self) -> None:
        """Restart the Dock. The Dock briefly disappears and reappears."""
        if not self.restart_command:
            return

        logger.info("Restarting Dock...")
        try:
            subprocess.run(self.restart_command, check=False, capture_output=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired) as e:
            self._report(ShellRestartError(" ".join(self.restart_command), str(e)))
            return

        self.restart_count += 1
        logger.info("Dock restarted")

    def _report(self, error: DeskModesError) -> None:
        self.last_error = error
        logger.error(error.message)

    def _tile_for(self, app: AppEntry) -> Optional[Dict[str, Any]]:
        app_path = self.locator.find(app.bundle_id)
        if app_path is None:
            logger.warning(f"Could not find path for app: {app.name} ({app.bundle_id})")
            return None

        return {
            "tile-data": {
                "bundle-identifier": app.bundle_id,
                "file-data": {
                    "_CFURLString": app_path.as_uri() + "/",
                    "_CFURLStringType": CFURL_STRING_TYPE,
                },
                "file-label": app.name,
                "file-type": FILE_TYPE_APPLICATION,
            },
            "tile-type": "file-tile",
        }
