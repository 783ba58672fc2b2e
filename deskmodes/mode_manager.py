"""Mode management.

Looks modes up in the configuration store, runs one reconciliation at a time
and tracks the current and last active mode across pause/resume.
"""

import asyncio
import logging
from typing import List, Optional

from .engine import ReconciliationEngine
from .errors import ModeNotFoundError
from .events import ChangeChannel
from .models import AppConfig, ModeConfig, ReconciliationOutcome
from .store import ConfigStore

logger = logging.getLogger(__name__)


class ModeManager:
    """Entry point for switching, reapplying and pausing modes."""

    def __init__(self, store: ConfigStore, engine: ReconciliationEngine):
        self.store = store
        self.engine = engine
        self.is_paused = False
        self.last_active_mode_id: Optional[str] = None
        self.mode_changes: ChangeChannel[Optional[ModeConfig]] = ChangeChannel("mode")
        self._lock = asyncio.Lock()
        self._subscription = store.subscribe(self._on_config_changed)

    @property
    def modes(self) -> List[ModeConfig]:
        return list(self.store.config.modes)

    @property
    def current_mode(self) -> Optional[ModeConfig]:
        if self.is_paused:
            return None
        return self.engine.current_mode

    def get_mode(self, mode_id: str) -> Optional[ModeConfig]:
        return self.store.get_mode(mode_id)

    def find_mode(self, name_or_id: str) -> Optional[ModeConfig]:
        """Look a mode up by id, then by case-insensitive name."""
        return self.store.find_mode(name_or_id)

    async def switch_to(self, mode_id: str) -> ReconciliationOutcome:
        """Switch to the mode with `mode_id`, unpausing if needed.

        Raises:
            ModeNotFoundError: If no mode has that id
        """
        mode = self.get_mode(mode_id)
        if mode is None:
            logger.warning(f"Mode not found: {mode_id}")
            raise ModeNotFoundError(mode_id)

        if self.is_paused:
            logger.info("Unpausing for mode switch")
            self.is_paused = False

        logger.info(f"Switching to mode: {mode.name}")
        outcome = await self._reconcile(mode)
        self.last_active_mode_id = mode.id
        self.mode_changes.publish(mode)
        return outcome

    async def reapply(self) -> Optional[ReconciliationOutcome]:
        """Reconcile the current mode again. None when paused or no mode is active."""
        current = self.current_mode
        if current is None:
            logger.debug("Nothing to reapply")
            return None

        # Pick up edits made since the mode was activated
        mode = self.get_mode(current.id) or current
        logger.info(f"Reapplying mode: {mode.name}")
        return await self._reconcile(mode)

    def pause(self) -> None:
        """Stop tracking the current mode; `resume()` restores it."""
        if self.is_paused:
            return
        if self.engine.current_mode is not None:
            self.last_active_mode_id = self.engine.current_mode.id
        self.engine.current_mode = None
        self.is_paused = True
        logger.info("DeskModes paused")
        self.mode_changes.publish(None)

    async def resume(self) -> Optional[ReconciliationOutcome]:
        """Unpause and switch back to the last active mode, if it still exists."""
        if not self.is_paused:
            return None
        self.is_paused = False
        logger.info("DeskModes resumed")

        if self.last_active_mode_id and self.get_mode(self.last_active_mode_id):
            return await self.switch_to(self.last_active_mode_id)
        return None

    def close(self) -> None:
        self._subscription.cancel()

    async def _reconcile(self, mode: ModeConfig) -> ReconciliationOutcome:
        # One reconciliation in flight at a time
        async with self._lock:
            return await self.engine.reconcile(mode)

    def _on_config_changed(self, config: AppConfig) -> None:
        current = self.engine.current_mode
        if current is None:
            return
        updated = config.get_mode(current.id)
        if updated is None:
            logger.info(f"Current mode {current.name} was deleted")
            self.engine.current_mode = None
            self.mode_changes.publish(None)
        elif updated != current:
            self.engine.current_mode = updated
