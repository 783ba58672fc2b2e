"""
DeskModes daemon.

Long-running process that owns the configuration store and the mode manager,
optionally switches to an initial mode, and reapplies the current mode on the
auto-reapply interval until it receives SIGINT or SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from .adapters import BundleLocator, OpenAppLauncher, ProcessAppCloser, ProcessAppLister
from .constants import ConfigPaths
from .dock import DockSynchronizer
from .engine import ReconciliationEngine
from .errors import ModeNotFoundError
from .mode_manager import ModeManager
from .reapply import AutoReapplyScheduler
from .store import ConfigStore

logger = logging.getLogger(__name__)


def open_store(config_dir: Optional[Path] = None) -> ConfigStore:
    """Create and load the configuration store for `config_dir`."""
    config_dir = config_dir or ConfigPaths.CONFIG_DIR
    store = ConfigStore(
        config_file=config_dir / "config.json",
        backup_file=config_dir / "config.json.bak",
    )
    store.load()
    return store


def build_engine(store: ConfigStore, launch_timeout: Optional[float] = None) -> ReconciliationEngine:
    """Wire the OS-backed collaborators into a reconciliation engine."""
    locator = BundleLocator()
    lister = ProcessAppLister()
    return ReconciliationEngine(
        lister=lister,
        closer=ProcessAppCloser(),
        launcher=OpenAppLauncher(locator=locator, lister=lister),
        config_provider=lambda: store.config,
        synchronizer=DockSynchronizer(locator=locator),
        launch_timeout=launch_timeout,
    )


class DeskModesDaemon:
    """Main daemon for mode management."""

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        initial_mode: Optional[str] = None,
        store: Optional[ConfigStore] = None,
        engine: Optional[ReconciliationEngine] = None,
    ):
        """
        Initialize the daemon.

        Args:
            config_dir: Configuration directory (defaults to ConfigPaths.CONFIG_DIR)
            initial_mode: Mode id or name to switch to on start
            store: Pre-built store (mainly for tests)
            engine: Pre-built engine (mainly for tests)
        """
        self.config_dir = config_dir
        self.initial_mode = initial_mode
        self.store = store
        self.engine = engine
        self.manager: Optional[ModeManager] = None
        self.reapply: Optional[AutoReapplyScheduler] = None
        self.running = False
        self._stopped: Optional[asyncio.Event] = None
        self.stop_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the daemon and block until `stop()` is called."""
        logger.info("Starting DeskModes daemon")
        self._stopped = asyncio.Event()

        if self.store is None:
            self.store = open_store(self.config_dir)
        if self.engine is None:
            self.engine = build_engine(self.store)

        self.manager = ModeManager(self.store, self.engine)
        self.reapply = AutoReapplyScheduler(self.manager, self.store)
        self.reapply.start()

        if self.initial_mode:
            mode = self.manager.find_mode(self.initial_mode)
            if mode is None:
                raise ModeNotFoundError(self.initial_mode)
            await self.manager.switch_to(mode.id)

        self.running = True
        logger.info("Daemon started successfully")

        await self._stopped.wait()

    async def stop(self) -> None:
        """Stop the daemon, flushing pending configuration writes."""
        logger.info("Stopping daemon...")
        self.running = False

        if self.reapply:
            self.reapply.stop()
        if self.manager:
            self.manager.close()
        if self.store:
            self.store.close()
        if self._stopped:
            self._stopped.set()

        logger.info("Daemon stopped")

    def request_stop(self) -> asyncio.Task:
        """Schedule `stop()` from a signal handler. Repeated requests share one task."""
        if self.stop_task is None:
            self.stop_task = asyncio.get_running_loop().create_task(self.stop())
        return self.stop_task


async def main(config_dir: Optional[Path] = None, initial_mode: Optional[str] = None) -> None:
    """Main entry point."""
    daemon = DeskModesDaemon(config_dir=config_dir, initial_mode=initial_mode)

    # Setup signal handlers
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        daemon.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await daemon.start()
        if daemon.stop_task is not None:
            await daemon.stop_task
    except ModeNotFoundError as e:
        logger.error(e.message)
        await daemon.stop()
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        await daemon.stop()
        sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())
