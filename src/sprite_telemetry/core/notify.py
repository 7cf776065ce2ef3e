"""Synchronous listener registry used by the stores for push notifications."""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ListenerSet(Generic[T]):
    """Ordered set of callbacks notified with a single payload.

    Listeners run synchronously in registration order. A listener that
    raises is logged and does not prevent the remaining listeners from
    running, nor does the exception reach the notifier.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[[T], None]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A callable that removes the listener again. Calling it more
            than once is harmless.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def notify(self, payload: T) -> None:
        """Invoke every registered listener with ``payload``."""
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s notification failed", self._name)
