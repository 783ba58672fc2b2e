"""Application bundle lookup.

Resolves bundle identifiers to installed `.app` bundles and reads their
Info.plist. Used by the launcher, the process lister and the Dock
synchronizer.
"""

import logging
import plistlib
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..constants import ConfigPaths

logger = logging.getLogger(__name__)


def read_bundle_info(bundle_path: Path) -> Optional[Dict[str, Any]]:
    """Read a bundle's Info.plist. Returns None if missing or unreadable."""
    info_path = bundle_path / "Contents" / "Info.plist"
    try:
        with open(info_path, "rb") as f:
            info = plistlib.load(f)
    except FileNotFoundError:
        return None
    except Exception as e:
        logger.debug(f"Unreadable Info.plist in {bundle_path}: {e}")
        return None
    return info if isinstance(info, dict) else None


def bundle_for_executable(executable: str) -> Optional[Path]:
    """Map `<X>.app/Contents/MacOS/<exe>` to `<X>.app`, else None."""
    if not executable:
        return None
    path = Path(executable)
    macos_dir = path.parent
    contents_dir = macos_dir.parent
    bundle = contents_dir.parent
    if macos_dir.name == "MacOS" and contents_dir.name == "Contents" and bundle.suffix == ".app":
        return bundle
    return None


def is_background_only(info: Dict[str, Any]) -> bool:
    """Agents and background-only apps never show up in the Dock or app switcher."""
    return _truthy(info.get("LSUIElement")) or _truthy(info.get("LSBackgroundOnly"))


def display_name(info: Dict[str, Any], fallback: str) -> str:
    return info.get("CFBundleDisplayName") or info.get("CFBundleName") or fallback


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class BundleLocator:
    """Finds installed applications by bundle identifier.

    Scans the standard application folders once and caches the index;
    a miss triggers one rescan in case the app was installed since.
    """

    def __init__(self, search_dirs: Optional[Iterable[Path]] = None):
        self.search_dirs = list(search_dirs) if search_dirs is not None else list(ConfigPaths.APPLICATION_DIRS)
        self._index: Optional[Dict[str, Path]] = None

    def find(self, bundle_id: str) -> Optional[Path]:
        """Return the bundle path for `bundle_id` (case-insensitive), or None."""
        key = bundle_id.lower()
        if self._index is None:
            self.refresh()
        path = self._index.get(key)
        if path is None or not path.exists():
            self.refresh()
            path = self._index.get(key)
        if path is None:
            logger.debug(f"No installed application for bundle id {bundle_id}")
        return path

    def refresh(self) -> None:
        index: Dict[str, Path] = {}
        for directory in self.search_dirs:
            if not directory.is_dir():
                continue
            for bundle in sorted(directory.glob("*.app")):
                info = read_bundle_info(bundle)
                bundle_id = info.get("CFBundleIdentifier") if info else None
                if isinstance(bundle_id, str) and bundle_id.lower() not in index:
                    index[bundle_id.lower()] = bundle
        self._index = index
        logger.debug(f"Indexed {len(index)} application bundle(s)")
