"""Coalescing schedulers.

"Run this after a delay, replacing anything already pending." The store uses
one to debounce configuration writes so that a burst of mutations produces a
single write of the final state.

Three implementations are provided:
- AsyncioCoalescingScheduler: backed by the running asyncio event loop, and by
  a timer thread when called with no loop running
- TimerCoalescingScheduler: backed by `threading.Timer`
- ManualScheduler: nothing fires until `run_pending()` is called (tests, and
  callers that flush explicitly)
"""

import asyncio
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CoalescingScheduler:
    """Base class for delayed, replace-on-reschedule execution."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Run `callback` after `delay` seconds, replacing any pending callback."""
        raise NotImplementedError

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        raise NotImplementedError

    @property
    def pending(self) -> bool:
        raise NotImplementedError


class TimerCoalescingScheduler(CoalescingScheduler):
    """Debounce on a `threading.Timer`.

    The callback runs on the timer thread. The timer is not a daemon thread,
    so a pending callback still runs before the interpreter exits.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        def _fire():
            with self._lock:
                if self._timer is not timer:
                    return
                self._timer = None
            callback()

        timer = threading.Timer(delay, _fire)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None


class AsyncioCoalescingScheduler(CoalescingScheduler):
    """Debounce on an asyncio event loop.

    `schedule` must be called from the loop's thread. When no loop is running
    and none was supplied, the delay is kept with a timer thread instead.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._fallback = TimerCoalescingScheduler()

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()

        loop = self._get_loop()
        if loop is None or loop.is_closed():
            logger.debug("No running event loop, scheduling callback on a timer thread")
            self._fallback.schedule(delay, callback)
            return

        def _fire():
            self._handle = None
            callback()

        self._handle = loop.call_later(delay, _fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._fallback.cancel()

    @property
    def pending(self) -> bool:
        return self._handle is not None or self._fallback.pending


class ManualScheduler(CoalescingScheduler):
    """Holds the latest callback until `run_pending()` is called."""

    def __init__(self):
        self._callback: Optional[Callable[[], None]] = None
        self.last_delay: Optional[float] = None
        self.schedule_count = 0

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self._callback = callback
        self.last_delay = delay
        self.schedule_count += 1

    def cancel(self) -> None:
        self._callback = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def run_pending(self) -> bool:
        """Execute the pending callback. Returns False if nothing was pending."""
        callback, self._callback = self._callback, None
        if callback is None:
            return False
        callback()
        return True
