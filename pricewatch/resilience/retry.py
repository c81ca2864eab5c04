"""
Retry Policy

Exponential backoff with jitter for transient scraping failures.

Only failures whose category is in the policy's retryable set are retried;
anything else (a page without a price, a price that fails validation,
bot detection) fails immediately since repeating the same request will
not change the outcome.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, TypeVar

from ..models import ErrorCategory
from .cancellation import CancellationToken
from .errors import CircuitOpenError, ExtractionCancelled, category_of

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_CATEGORIES: FrozenSet[ErrorCategory] = frozenset({
    ErrorCategory.NETWORK_ERROR,
    ErrorCategory.TIMEOUT,
})


@dataclass(frozen=True)
class RetryPolicy:
    """Per call-site retry configuration."""
    max_attempts: int = 3
    base_delay_ms: int = 1000
    jitter_ratio: float = 0.1
    max_delay_ms: Optional[int] = None
    retryable_categories: FrozenSet[ErrorCategory] = TRANSIENT_CATEGORIES

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.jitter_ratio < 0:
            raise ValueError("jitter_ratio must be >= 0")

    def is_retryable(self, category: ErrorCategory) -> bool:
        return category in self.retryable_categories


def compute_delay(policy: RetryPolicy, attempt: int, rng: Callable[[], float] = random.random) -> float:
    """
    Backoff before the retry that follows `attempt` (1-based), in seconds.

    base_delay_ms * 2^(attempt-1), capped at max_delay_ms, plus up to
    jitter_ratio of that delay.
    """
    delay_ms = policy.base_delay_ms * (2 ** (attempt - 1))
    if policy.max_delay_ms is not None:
        delay_ms = min(delay_ms, policy.max_delay_ms)
    delay_ms += delay_ms * policy.jitter_ratio * rng()
    return delay_ms / 1000.0


def retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    operation_name: str = "operation",
    cancel: Optional[CancellationToken] = None,
    sleep: Optional[Callable[[float], None]] = None,
    rng: Callable[[], float] = random.random,
) -> T:
    """
    Invoke operation, retrying retryable failures with backoff.

    Args:
        operation: Zero-argument callable to run
        policy: Retry configuration
        operation_name: Label for log messages
        cancel: Optional cancellation token (checked before each attempt
                and during backoff waits)
        sleep: Backoff sleep override; by default backoff waits on the
               cancel token (or time.sleep without one)
        rng: Random source in [0, 1) for jitter

    Returns:
        The operation's result

    Raises:
        The last failure once attempts are exhausted, or the first
        non-retryable failure. CircuitOpenError and ExtractionCancelled
        propagate untouched.
    """
    for attempt in range(1, policy.max_attempts + 1):
        if cancel is not None:
            cancel.raise_if_cancelled()

        try:
            result = operation()
        except (CircuitOpenError, ExtractionCancelled):
            raise
        except Exception as e:
            if hasattr(e, "attempts"):
                e.attempts = attempt
            category = category_of(e)

            if not policy.is_retryable(category):
                logger.debug("%s failed with non-retryable %s: %s", operation_name, category.value, e)
                raise

            if attempt >= policy.max_attempts:
                logger.warning(
                    "%s failed after %d attempts (%s): %s",
                    operation_name, attempt, category.value, e,
                )
                raise

            delay = compute_delay(policy, attempt, rng)
            logger.warning(
                "%s failed (%s), retry %d/%d in %.2fs: %s",
                operation_name, category.value, attempt, policy.max_attempts - 1, delay, e,
            )
            if sleep is not None:
                sleep(delay)
            elif cancel is not None:
                if cancel.wait(delay):
                    raise ExtractionCancelled() from e
            else:
                time.sleep(delay)
            continue

        if attempt > 1:
            logger.info("%s succeeded on attempt %d/%d", operation_name, attempt, policy.max_attempts)
        return result

    # max_attempts >= 1 means the loop always returns or raises
    raise AssertionError("unreachable")
