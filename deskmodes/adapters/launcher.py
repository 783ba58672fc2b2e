"""Application launcher backed by `open(1)`."""

import asyncio
import logging
from typing import Optional

from ..collaborators import AppLister, LaunchResult
from ..models import AppEntry
from .bundles import BundleLocator

logger = logging.getLogger(__name__)


class OpenAppLauncher:
    """Launches apps in the background (`open -g`) without stealing focus."""

    def __init__(self, locator: Optional[BundleLocator] = None, lister: Optional[AppLister] = None):
        """
        Args:
            locator: Resolves bundle ids to installed bundles
            lister: Used to answer "already running" before launching
        """
        self.locator = locator or BundleLocator()
        self.lister = lister

    def is_app_running(self, app: AppEntry) -> bool:
        if self.lister is None:
            return False
        return any(running.key == app.key for running in self.lister.list_running_apps())

    async def launch_app(self, app: AppEntry) -> LaunchResult:
        logger.info(f"Attempting to launch: {app.name}")

        if self.is_app_running(app):
            logger.debug(f"{app.name} is already running")
            return LaunchResult.already_running()

        app_path = self.locator.find(app.bundle_id)
        if app_path is None:
            error = f"Could not find application with bundle ID: {app.bundle_id}"
            logger.error(error)
            return LaunchResult.failed(error)

        try:
            process = await asyncio.create_subprocess_exec(
                "open", "-g", "-a", str(app_path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError as e:
            error = f"Failed to launch {app.name}: {e}"
            logger.error(error)
            return LaunchResult.failed(error)

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"open exited with {process.returncode}"
            error = f"Failed to launch {app.name}: {detail}"
            logger.error(error)
            return LaunchResult.failed(error)

        logger.info(f"Launched app: {app.name}")
        return LaunchResult.launched()
