from __future__ import annotations

import threading
from typing import Callable, List

from .errors import OperationCancelled


class Cancellation:
    """Shared shutdown signal with interruptible delays."""

    def __init__(self):
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.RLock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once cancellation is requested (immediately if it already was)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def check(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds``, raising ``OperationCancelled`` if shutdown arrives first."""
        self.check()
        if self._event.wait(seconds):
            raise OperationCancelled("Operation cancelled")
