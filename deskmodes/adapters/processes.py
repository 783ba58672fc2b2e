"""psutil-backed process collaborators.

A process counts as a user-facing application when its executable lives at
`<X>.app/Contents/MacOS/<exe>` and the bundle is not an agent
(LSUIElement) or background-only app.
"""

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

import psutil

from ..collaborators import CloseResult
from ..constants import SAFE_CLOSE_REFUSED_REASON
from ..models import AppEntry
from .bundles import bundle_for_executable, display_name, is_background_only, read_bundle_info

logger = logging.getLogger(__name__)

# AppleScript "User canceled." error number
USER_CANCELED_ERROR = "-128"

BUNDLE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.\-_]*$")


@dataclass(frozen=True)
class AppProcess:
    process: psutil.Process
    bundle_path: Path
    app: AppEntry


def iter_app_processes(exclude_pids: Optional[Set[int]] = None) -> Iterator[AppProcess]:
    """Yield every running process that belongs to a user-facing app bundle."""
    exclude = exclude_pids or set()
    info_cache: Dict[Path, Optional[dict]] = {}

    for proc in psutil.process_iter(["pid", "exe", "name"]):
        try:
            if proc.info["pid"] in exclude:
                continue
            bundle = bundle_for_executable(proc.info.get("exe") or "")
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        if bundle is None:
            continue

        if bundle not in info_cache:
            info_cache[bundle] = read_bundle_info(bundle)
        info = info_cache[bundle]
        if not info or is_background_only(info):
            continue

        bundle_id = info.get("CFBundleIdentifier")
        if not isinstance(bundle_id, str) or not bundle_id:
            continue

        name = display_name(info, proc.info.get("name") or bundle_id.split(".")[-1])
        yield AppProcess(process=proc, bundle_path=bundle, app=AppEntry(bundle_id=bundle_id, name=name))


class ProcessAppLister:
    """Lists running user-facing apps, one entry per bundle id."""

    def __init__(self, exclude_bundle_ids: Optional[Set[str]] = None):
        self.own_pid = os.getpid()
        self.exclude_bundle_ids = {b.lower() for b in (exclude_bundle_ids or set())}

    def list_running_apps(self) -> List[AppEntry]:
        apps: Dict[str, AppEntry] = {}
        for entry in iter_app_processes(exclude_pids={self.own_pid}):
            key = entry.app.key
            if key in self.exclude_bundle_ids or key in apps:
                continue
            apps[key] = entry.app

        logger.debug(f"Found {len(apps)} running user apps")
        return list(apps.values())


class ProcessAppCloser:
    """Closes apps with an AppleScript quit (safe) or SIGKILL (force).

    A safe quit lets the app put up its save dialog; a cancelled dialog or a
    dialog left open past `quit_timeout` reports the app as skipped.
    """

    def __init__(self, quit_timeout: float = 30.0):
        self.quit_timeout = quit_timeout
        self.own_pid = os.getpid()

    def _processes_for(self, app: AppEntry) -> List[psutil.Process]:
        return [
            entry.process
            for entry in iter_app_processes(exclude_pids={self.own_pid})
            if entry.app.key == app.key
        ]

    def close_app(self, app: AppEntry, force: bool = False) -> CloseResult:
        logger.info(f"Attempting to close: {app.name} (force: {force})")

        processes = self._processes_for(app)
        if not processes:
            logger.debug(f"{app.name} is not running")
            return CloseResult.not_running()

        if force:
            return self._force_close(app, processes)
        return self._safe_close(app)

    def _force_close(self, app: AppEntry, processes: List[psutil.Process]) -> CloseResult:
        for proc in processes:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                logger.error(f"Not allowed to kill {app.name} (pid {proc.pid}): {e}")
                return CloseResult.failed(f"Permission denied killing pid {proc.pid}")

        logger.info(f"Force closed app: {app.name}")
        return CloseResult.closed()

    def _safe_close(self, app: AppEntry) -> CloseResult:
        if not BUNDLE_ID_PATTERN.match(app.bundle_id):
            return CloseResult.failed(f"Invalid bundle identifier: {app.bundle_id!r}")

        script = f'tell application id "{app.bundle_id}" to quit'
        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=self.quit_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Skipped app: {app.name} (no answer to quit within {self.quit_timeout}s)")
            return CloseResult.skipped(SAFE_CLOSE_REFUSED_REASON)
        except FileNotFoundError:
            return CloseResult.failed("osascript not available")

        if result.returncode == 0:
            logger.info(f"Closed app: {app.name}")
            return CloseResult.closed()

        stderr = result.stderr.strip()
        if USER_CANCELED_ERROR in stderr:
            logger.warning(f"Skipped app: {app.name} ({SAFE_CLOSE_REFUSED_REASON})")
            return CloseResult.skipped(SAFE_CLOSE_REFUSED_REASON)

        logger.error(f"Failed to close {app.name}: {stderr}")
        return CloseResult.failed(stderr or f"osascript exited with {result.returncode}")
