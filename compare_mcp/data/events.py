"""In-process change notification shared by the persisted client-state stores."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeNotifier(Generic[T]):
    """FIFO list of callbacks fired synchronously after each successful persist."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.RLock()
        self._callbacks: list[Callable[[T], None]] = []

    def register(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback``.  Returns a function that detaches it."""
        with self._lock:
            self._callbacks.append(callback)

        def _remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _remove

    def emit(self, value: T) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for cb in callbacks:
            try:
                cb(value)
            except Exception:
                logger.exception("%s change callback failed", self._name)

    def clear(self) -> None:
        """Remove all callbacks.  Intended for tests."""
        with self._lock:
            self._callbacks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)
