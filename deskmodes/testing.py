"""In-memory collaborators for tests and dry runs.

`FakeDesktop` models the set of running apps. The lister, closer and launcher
it hands out all read and mutate that shared state, so a reconciliation run
against it behaves like one against a real desktop.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .collaborators import CloseResult, LaunchResult
from .models import AppEntry


class FakeDesktop:
    """Shared state behind the fake collaborators."""

    def __init__(
        self,
        running: Iterable[AppEntry] = (),
        installed: Optional[Iterable[AppEntry]] = None,
    ):
        self.running: List[AppEntry] = list(running)
        # None means "everything is installed"
        self.installed: Optional[Set[str]] = (
            {app.key for app in installed} if installed is not None else None
        )
        self.refuse_close: Dict[str, str] = {}
        self.fail_close: Dict[str, str] = {}
        self.fail_launch: Dict[str, str] = {}
        self.launch_delay: float = 0.0

        self.close_requests: List[Tuple[AppEntry, bool]] = []
        self.launch_requests: List[AppEntry] = []
        self.calls: List[str] = []

    def is_running(self, app: AppEntry) -> bool:
        return any(r.key == app.key for r in self.running)

    def lister(self) -> "FakeAppLister":
        return FakeAppLister(self)

    def closer(self) -> "FakeAppCloser":
        return FakeAppCloser(self)

    def launcher(self) -> "FakeAppLauncher":
        return FakeAppLauncher(self)


class FakeAppLister:
    def __init__(self, desktop: FakeDesktop):
        self.desktop = desktop

    def list_running_apps(self) -> List[AppEntry]:
        self.desktop.calls.append("list")
        return list(self.desktop.running)


class FakeAppCloser:
    def __init__(self, desktop: FakeDesktop):
        self.desktop = desktop

    def close_app(self, app: AppEntry, force: bool = False) -> CloseResult:
        desktop = self.desktop
        desktop.calls.append(f"close:{app.bundle_id}")
        desktop.close_requests.append((app, force))

        if not desktop.is_running(app):
            return CloseResult.not_running()
        if app.key in desktop.fail_close:
            return CloseResult.failed(desktop.fail_close[app.key])
        if app.key in desktop.refuse_close and not force:
            return CloseResult.skipped(desktop.refuse_close[app.key])

        desktop.running = [r for r in desktop.running if r.key != app.key]
        return CloseResult.closed()


class FakeAppLauncher:
    def __init__(self, desktop: FakeDesktop):
        self.desktop = desktop

    async def launch_app(self, app: AppEntry) -> LaunchResult:
        desktop = self.desktop
        desktop.calls.append(f"launch:{app.bundle_id}")
        desktop.launch_requests.append(app)

        if desktop.launch_delay:
            await asyncio.sleep(desktop.launch_delay)

        if desktop.is_running(app):
            return LaunchResult.already_running()
        if desktop.installed is not None and app.key not in desktop.installed:
            return LaunchResult.failed("not found")
        if app.key in desktop.fail_launch:
            return LaunchResult.failed(desktop.fail_launch[app.key])

        desktop.running.append(app)
        return LaunchResult.launched()
