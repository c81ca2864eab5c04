"""
Cooperative cancellation and deadlines for one extraction call.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from .errors import ExtractionCancelled


class CancellationToken:
    """
    Caller-owned cancellation signal.

    Thin wrapper over threading.Event so that waits (retry backoff,
    streamed body reads) wake up immediately when cancel() is called.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; return True if cancelled meanwhile."""
        return self._event.wait(max(seconds, 0.0))


class Deadline:
    """Overall time budget for one extraction call."""

    def __init__(self, budget_s: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if budget_s is None else clock() + budget_s

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(self._expires_at - self._clock(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def clamp(self, timeout_s: float) -> float:
        """Cap a per-call timeout at the remaining budget."""
        remaining = self.remaining()
        if remaining is None:
            return timeout_s
        return min(timeout_s, remaining)
