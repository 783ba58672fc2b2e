"""Process and launch collaborator contracts.

The reconciliation engine only talks to running applications through these
protocols. OS-backed implementations live in `deskmodes.adapters`; in-memory
fakes live in `deskmodes.testing`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol, runtime_checkable

from .models import AppEntry


class CloseStatus(str, Enum):
    """Result of a close request."""
    CLOSED = "closed"
    SKIPPED = "skipped"          # Declined, typically unsaved changes
    NOT_RUNNING = "not_running"
    FAILED = "failed"


class LaunchStatus(str, Enum):
    """Result of a launch request."""
    LAUNCHED = "launched"
    ALREADY_RUNNING = "already_running"
    FAILED = "failed"


@dataclass(frozen=True)
class CloseResult:
    status: CloseStatus
    reason: str = ""

    @classmethod
    def closed(cls) -> "CloseResult":
        return cls(CloseStatus.CLOSED)

    @classmethod
    def skipped(cls, reason: str) -> "CloseResult":
        return cls(CloseStatus.SKIPPED, reason)

    @classmethod
    def not_running(cls) -> "CloseResult":
        return cls(CloseStatus.NOT_RUNNING)

    @classmethod
    def failed(cls, reason: str) -> "CloseResult":
        return cls(CloseStatus.FAILED, reason)


@dataclass(frozen=True)
class LaunchResult:
    status: LaunchStatus
    reason: str = ""

    @classmethod
    def launched(cls) -> "LaunchResult":
        return cls(LaunchStatus.LAUNCHED)

    @classmethod
    def already_running(cls) -> "LaunchResult":
        return cls(LaunchStatus.ALREADY_RUNNING)

    @classmethod
    def failed(cls, reason: str) -> "LaunchResult":
        return cls(LaunchStatus.FAILED, reason)


@runtime_checkable
class AppLister(Protocol):
    def list_running_apps(self) -> List[AppEntry]:
        """Running, user-facing apps, excluding this process and background agents."""
        ...


@runtime_checkable
class AppCloser(Protocol):
    def close_app(self, app: AppEntry, force: bool = False) -> CloseResult:
        """Ask `app` to quit; `force` kills it without giving it a chance to refuse."""
        ...


@runtime_checkable
class AppLauncher(Protocol):
    async def launch_app(self, app: AppEntry) -> LaunchResult:
        """Launch `app` and wait until the OS reports success or failure."""
        ...


@runtime_checkable
class ShortcutSynchronizer(Protocol):
    def set_apps(self, apps: List[AppEntry]) -> bool:
        """Replace the pinned shortcuts with `apps`, in order. Returns success."""
        ...
