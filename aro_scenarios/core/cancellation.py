"""Cooperative cancellation for the long-running analytics."""

from __future__ import annotations

import threading
import time
from typing import Optional


class SimulationCancelled(RuntimeError):
    """Raised when a CancellationToken fires during a run."""


class CancellationToken:
    """
    Cancel flag plus optional deadline, shared between caller and worker.

    The caller keeps the token and calls ``cancel()`` (from any thread);
    the worker polls ``raise_if_cancelled()`` between units of work. A
    ``timeout`` in seconds starts counting at construction.
    """

    def __init__(self, timeout: Optional[float] = None, event: Optional[threading.Event] = None) -> None:
        self._event = event or threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self, what: str = "run") -> None:
        if self.cancelled:
            reason = "cancelled" if self._event.is_set() else "timed out"
            raise SimulationCancelled(f"{what} {reason}")


__all__ = ["CancellationToken", "SimulationCancelled"]
