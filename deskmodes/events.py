"""Change notification channel.

Subscribers are plain callables invoked synchronously, in subscription order,
every time a value is published. A failing subscriber is logged and does not
prevent the others from being notified.
"""

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by `ChangeChannel.subscribe`; call `cancel()` to stop."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._cancel()
            self.active = False


class ChangeChannel(Generic[T]):
    """Synchronous publish/subscribe channel for a single value type."""

    def __init__(self, name: str = "change"):
        self.name = name
        self._subscribers: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        self._subscribers.append(callback)
        logger.debug(f"Subscriber added to {self.name} channel ({len(self._subscribers)} total)")
        return Subscription(lambda: self._remove(callback))

    def _remove(self, callback: Callable[[T], None]) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def publish(self, value: T) -> None:
        # Snapshot so subscribers may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Subscriber to {self.name} channel failed: {e}")

    def __len__(self) -> int:
        return len(self._subscribers)
