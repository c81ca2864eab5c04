"""
Circuit Breaker

Stops calling a repeatedly failing dependency until a cooldown elapses.

States:
    CLOSED     normal operation, calls pass through
    OPEN       failure threshold reached, calls are rejected immediately
    HALF_OPEN  cooldown elapsed, a limited number of probe calls pass

Each named operation (e.g. "price-scrape:nike.com:standard_fetch") owns
its own breaker, so one retailer's outage never blocks another.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..models import ErrorCategory
from .errors import CircuitOpenError, ExtractionCancelled, category_of

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Thresholds for one breaker."""
    failure_threshold: int = 5    # consecutive failures before opening
    success_threshold: int = 2    # consecutive half-open successes before closing
    timeout: float = 30.0         # seconds spent open before probing
    half_open_max_calls: int = 1  # concurrent probes allowed while half-open


@dataclass(frozen=True)
class CircuitBreakerStatus:
    name: str
    state: CircuitState
    consecutive_failures: int
    consecutive_successes: int
    opened_at: Optional[float]
    last_error_category: Optional[ErrorCategory]


class CircuitBreaker:
    """
    Three-state circuit breaker for a single named operation.

    All state transitions happen under the instance lock, so concurrent
    callers on the same operation never interleave counter updates.

    Usage:
        breaker = CircuitBreaker("price-scrape:nike.com:standard_fetch")
        html = breaker.call(fetch_page, url)
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._opened_at: Optional[float] = None
        self._half_open_in_flight = 0
        self._last_error_category: Optional[ErrorCategory] = None

        logger.debug(
            "CircuitBreaker initialized: %s (failures=%d, successes=%d, timeout=%.1fs)",
            name, self.config.failure_threshold, self.config.success_threshold, self.config.timeout,
        )

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def status(self) -> CircuitBreakerStatus:
        with self._lock:
            return CircuitBreakerStatus(
                name=self.name,
                state=self._state,
                consecutive_failures=self._consecutive_failures,
                consecutive_successes=self._consecutive_successes,
                opened_at=self._opened_at,
                last_error_category=self._last_error_category,
            )

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run fn under breaker protection.

        Raises:
            CircuitOpenError: If the breaker rejects the call (fn is not run)
            Exception: Whatever fn raised (recorded as a failure, except
                       cancellation which is not the dependency's fault)
        """
        probe = self._acquire()

        try:
            result = fn(*args, **kwargs)
        except ExtractionCancelled:
            self._release(probe)
            raise
        except Exception as e:
            self._record_failure(category_of(e), probe)
            raise

        self._record_success(probe)
        return result

    def record_success(self) -> None:
        self._record_success(probe=False)

    def record_failure(self, category: ErrorCategory = ErrorCategory.UNKNOWN) -> None:
        self._record_failure(category, probe=False)

    def reset(self) -> None:
        """Manually close the breaker."""
        with self._lock:
            self._close()

    # ── Internals (callers hold no lock) ─────────────────────────────────────

    def _acquire(self) -> bool:
        """Admit or reject a call. Returns True if the call is a half-open probe."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - (self._opened_at or 0.0)
                if elapsed < self.config.timeout:
                    raise CircuitOpenError(
                        self.name, self.config.timeout - elapsed, self._last_error_category
                    )
                self._set_state(CircuitState.HALF_OPEN)
                self._consecutive_successes = 0
                self._half_open_in_flight = 0

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.config.half_open_max_calls:
                    raise CircuitOpenError(self.name, 0.0, self._last_error_category)
                self._half_open_in_flight += 1
                return True

            return False

    def _release(self, probe: bool) -> None:
        with self._lock:
            if probe and self._half_open_in_flight > 0:
                self._half_open_in_flight -= 1

    def _record_success(self, probe: bool) -> None:
        with self._lock:
            if probe and self._half_open_in_flight > 0:
                self._half_open_in_flight -= 1

            if self._state == CircuitState.HALF_OPEN:
                self._consecutive_successes += 1
                logger.info(
                    "CircuitBreaker %s success in HALF_OPEN (%d/%d)",
                    self.name, self._consecutive_successes, self.config.success_threshold,
                )
                if self._consecutive_successes >= self.config.success_threshold:
                    self._close()
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures = 0

    def _record_failure(self, category: ErrorCategory, probe: bool) -> None:
        with self._lock:
            if probe and self._half_open_in_flight > 0:
                self._half_open_in_flight -= 1

            self._consecutive_failures += 1
            self._last_error_category = category

            if self._state == CircuitState.HALF_OPEN:
                self._open()
                return

            if self._state == CircuitState.CLOSED:
                logger.warning(
                    "CircuitBreaker %s failure (%d/%d): %s",
                    self.name, self._consecutive_failures, self.config.failure_threshold,
                    category.value,
                )
                if self._consecutive_failures >= self.config.failure_threshold:
                    self._open()

    def _open(self) -> None:
        self._set_state(CircuitState.OPEN)
        self._opened_at = self._clock()
        self._consecutive_successes = 0
        self._half_open_in_flight = 0
        logger.error(
            "CircuitBreaker %s opened after %d failures, retry after %.1fs",
            self.name, self._consecutive_failures, self.config.timeout,
        )

    def _close(self) -> None:
        self._set_state(CircuitState.CLOSED)
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._opened_at = None
        self._half_open_in_flight = 0

    def _set_state(self, new_state: CircuitState) -> None:
        if new_state != self._state:
            logger.info("CircuitBreaker %s: %s -> %s", self.name, self._state.value, new_state.value)
            self._state = new_state


class CircuitBreakerRegistry:
    """
    Lazily creates one breaker per operation name.

    Breakers are never removed during the process lifetime; the registry
    lock only guards creation and enumeration.
    """

    def __init__(
        self,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, config or self.default_config, clock=self._clock)
                self._breakers[name] = breaker
            return breaker

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._breakers

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
        logger.info("All circuit breakers reset")

    def statuses(self) -> Dict[str, CircuitBreakerStatus]:
        with self._lock:
            breakers = list(self._breakers.items())
        return {name: breaker.status() for name, breaker in breakers}


_default_registry = CircuitBreakerRegistry()


def get_default_breaker_registry() -> CircuitBreakerRegistry:
    """Process-wide registry shared by every pipeline that isn't given its own."""
    return _default_registry
