"""Reconciliation engine.

Converges the set of running applications toward a mode:

1. List running user-facing apps
2. Close every running app outside (global allow list + mode apps)
3. Launch mode apps that are not running
4. Launch global allow-list apps that are not running and not mode apps
5. Mirror the effective allow set into the Dock if the mode asks for it
6. Record the mode as current and return the outcome

Everything runs sequentially in one flow: all closes finish before the first
launch, and each launch is awaited before the next is issued. Per-app problems
are captured in the outcome; nothing is aborted early.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from .collaborators import (
    AppCloser,
    AppLauncher,
    AppLister,
    CloseResult,
    CloseStatus,
    LaunchResult,
    LaunchStatus,
    ShortcutSynchronizer,
)
from .models import (
    AllowSet,
    AppConfig,
    AppEntry,
    FailedLaunch,
    ModeConfig,
    ReconciliationOutcome,
    SkippedApp,
)

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Diffs running apps against a mode and issues close/launch requests."""

    def __init__(
        self,
        lister: AppLister,
        closer: AppCloser,
        launcher: AppLauncher,
        config_provider: Callable[[], AppConfig],
        synchronizer: Optional[ShortcutSynchronizer] = None,
        launch_timeout: Optional[float] = None,
    ):
        """
        Initialize the engine.

        Args:
            lister: Source of running apps
            closer: Issues close requests
            launcher: Issues launch requests
            config_provider: Returns the current configuration (global allow
                list and force-close flag are read at every reconciliation)
            synchronizer: Dock synchronizer, used for modes with manage_shell
            launch_timeout: Seconds before a pending launch is reported as
                failed. None waits as long as the OS does.
        """
        self.lister = lister
        self.closer = closer
        self.launcher = launcher
        self.config_provider = config_provider
        self.synchronizer = synchronizer
        self.launch_timeout = launch_timeout
        self.current_mode: Optional[ModeConfig] = None

    async def reconcile(self, mode: ModeConfig) -> ReconciliationOutcome:
        """Switch to `mode`. Never raises for per-app failures."""
        logger.info(f"=== Mode switch started: {mode.name} ===")

        config = self.config_provider()
        allow = AllowSet(config.global_allow_list, mode.apps)

        running = self.lister.list_running_apps()
        logger.info(f"Found {len(running)} running apps")

        closed: List[AppEntry] = []
        skipped: List[SkippedApp] = []
        kept: List[AppEntry] = []
        seen: Dict[str, AppEntry] = {}

        for app in running:
            if app.key in seen:
                continue
            seen[app.key] = app

            if app in allow:
                logger.debug(f"Keeping: {app.name}")
                kept.append(app)
                continue

            result = self._close(app, config.force_close_apps)
            if result.status in (CloseStatus.CLOSED, CloseStatus.NOT_RUNNING):
                closed.append(app)
            else:
                # Refusals and failures are both tolerated; the user can close it later
                skipped.append(SkippedApp(app, result.reason or result.status.value))

        opened: List[AppEntry] = []
        failed: List[FailedLaunch] = []

        for app in [*allow.mode_apps, *allow.global_only]:
            if app.key in seen:
                continue
            result = await self._launch(app)
            if result.status == LaunchStatus.LAUNCHED:
                opened.append(app)
            elif result.status == LaunchStatus.ALREADY_RUNNING:
                logger.debug(f"{app.name} already running")
            else:
                failed.append(FailedLaunch(app, result.reason or "launch failed"))

        shell_synced = None
        if mode.manage_shell:
            shell_synced = self._sync_shell(mode, allow.effective)

        outcome = ReconciliationOutcome(
            target_mode=mode,
            closed_apps=closed,
            skipped_apps=skipped,
            kept_apps=kept,
            opened_apps=opened,
            failed_to_open=failed,
            shell_synced=shell_synced,
        )
        self._log_summary(outcome)

        self.current_mode = mode
        logger.info(f"=== Mode switch completed: {mode.name} ===")
        return outcome

    def _close(self, app: AppEntry, force: bool) -> CloseResult:
        try:
            return self.closer.close_app(app, force=force)
        except Exception as e:
            logger.exception(f"Close request for {app.name} raised: {e}")
            return CloseResult.failed(str(e) or type(e).__name__)

    async def _launch(self, app: AppEntry) -> LaunchResult:
        try:
            if self.launch_timeout is None:
                return await self.launcher.launch_app(app)
            return await asyncio.wait_for(self.launcher.launch_app(app), timeout=self.launch_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Launch of {app.name} timed out after {self.launch_timeout}s")
            return LaunchResult.failed(f"timed out after {self.launch_timeout}s")
        except Exception as e:
            logger.exception(f"Launch request for {app.name} raised: {e}")
            return LaunchResult.failed(str(e) or type(e).__name__)

    def _sync_shell(self, mode: ModeConfig, apps: List[AppEntry]) -> Optional[bool]:
        if self.synchronizer is None:
            logger.debug(f"Dock management requested by {mode.name} but no synchronizer configured")
            return None

        logger.info(f"Setting Dock for mode '{mode.name}' with {len(apps)} apps")
        try:
            synced = self.synchronizer.set_apps(apps)
        except Exception as e:
            logger.exception(f"Dock update raised: {e}")
            synced = False

        if synced:
            logger.info(f"Dock updated for mode: {mode.name}")
        else:
            logger.error(f"Failed to update Dock for mode: {mode.name}")
        return synced

    def _log_summary(self, outcome: ReconciliationOutcome) -> None:
        logger.info("--- Mode Switch Summary ---")
        logger.info(f"Target mode: {outcome.target_mode.name}")

        if outcome.closed_apps:
            logger.info(f"Closed ({len(outcome.closed_apps)}):")
            for app in outcome.closed_apps:
                logger.info(f"  - {app.name}")

        if outcome.skipped_apps:
            logger.warning(f"Skipped ({len(outcome.skipped_apps)}):")
            for app, reason in outcome.skipped_apps:
                logger.warning(f"  - {app.name}: {reason}")

        if outcome.opened_apps:
            logger.info(f"Opened ({len(outcome.opened_apps)}):")
            for app in outcome.opened_apps:
                logger.info(f"  - {app.name}")

        if outcome.failed_to_open:
            logger.error(f"Failed to open ({len(outcome.failed_to_open)}):")
            for app, error in outcome.failed_to_open:
                logger.error(f"  - {app.name}: {error}")
