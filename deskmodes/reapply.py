"""Periodic reapply of the current mode.

When `enable_auto_reapply` is set, the current mode is reconciled again every
`auto_reapply_interval` minutes, catching apps the user opened in between.
Ticks are skipped while paused or when no mode is active. The timer restarts
whenever either setting changes.
"""

import asyncio
import logging
from typing import Optional, Tuple

from .events import Subscription
from .mode_manager import ModeManager
from .models import AppConfig, ReconciliationOutcome
from .store import ConfigStore

logger = logging.getLogger(__name__)


class AutoReapplyScheduler:
    """Runs `ModeManager.reapply()` on a fixed interval."""

    def __init__(self, manager: ModeManager, store: ConfigStore, seconds_per_unit: float = 60.0):
        """
        Args:
            manager: Mode manager to reapply through
            store: Source of the enable flag and interval
            seconds_per_unit: Length of one interval unit (minutes in production)
        """
        self.manager = manager
        self.store = store
        self.seconds_per_unit = seconds_per_unit
        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscription: Optional[Subscription] = None
        self._settings: Optional[Tuple[bool, int]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start following the configuration. Must be called from the event loop."""
        self._loop = asyncio.get_running_loop()
        self._subscription = self.store.subscribe(self._on_config_changed)
        self._apply_settings(self.store.config, force=True)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._cancel_task()

    async def tick(self) -> Optional[ReconciliationOutcome]:
        """One reapply attempt."""
        self.tick_count += 1
        if self.manager.is_paused or self.manager.current_mode is None:
            logger.info(f"Auto-reapply skipped: paused={self.manager.is_paused}, "
                        f"current_mode={getattr(self.manager.current_mode, 'name', None)}")
            return None

        logger.info("Auto-reapply triggered")
        return await self.manager.reapply()

    def _on_config_changed(self, config: AppConfig) -> None:
        self._apply_settings(config)

    def _apply_settings(self, config: AppConfig, force: bool = False) -> None:
        settings = (config.enable_auto_reapply, config.auto_reapply_interval)
        if settings == self._settings and not force:
            return
        self._settings = settings
        self._cancel_task()

        if not config.enable_auto_reapply:
            logger.info("Auto-reapply disabled")
            return

        interval = config.auto_reapply_interval * self.seconds_per_unit
        logger.info(f"Auto-reapply enabled: every {config.auto_reapply_interval} minutes")
        self._task = self._loop.create_task(self._run(interval))

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Auto-reapply failed: {e}")
