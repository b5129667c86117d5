"""
Realtime change feed.

Models the document store's push subscription as an explicit capability:
``subscribe(callback)`` registers once and returns a handle whose
``unsubscribe()`` tears it down. Callbacks receive the full current snapshot
on every change, never a diff.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class Subscription:
    """Cancellable handle returned by ``ChangeFeed.subscribe``."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._cancel()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class ChangeFeed(Generic[T]):
    """In-process fan-out of snapshots to registered callbacks."""

    def __init__(self, name: str = "feed"):
        self.name = name
        self._callbacks: dict[int, Callable[[T], None]] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        token = self._next_id
        self._next_id += 1
        self._callbacks[token] = callback
        return Subscription(lambda: self._callbacks.pop(token, None))

    def publish(self, snapshot: T) -> None:
        """Deliver ``snapshot`` to every subscriber; one failing callback does not stop the rest."""
        for callback in list(self._callbacks.values()):
            try:
                callback(snapshot)
            except Exception:  # Intentionally broad - a subscriber bug must not break the feed
                logger.exception(f"Subscriber of {self.name} failed")
