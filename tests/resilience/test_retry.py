"""Tests for pricewatch/resilience/retry.py"""

import pytest

from pricewatch.models import ErrorCategory
from pricewatch.resilience.cancellation import CancellationToken
from pricewatch.resilience.errors import CircuitOpenError, ExtractionCancelled, ScrapeError
from pricewatch.resilience.retry import RetryPolicy, compute_delay, retry


class FlakyOperation:
    """Fails with the given errors in order, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def network_error():
    return ScrapeError("Fetch HTTP 503", http_status=503)


class TestRetry:
    def test_retryable_failure_uses_all_attempts(self, no_sleep):
        op = FlakyOperation(network_error(), network_error(), network_error())
        policy = RetryPolicy(max_attempts=3, base_delay_ms=100, jitter_ratio=0)

        with pytest.raises(ScrapeError) as exc_info:
            retry(op, policy, sleep=no_sleep)

        assert op.calls == 3
        assert exc_info.value.attempts == 3
        assert no_sleep.delays == [0.1, 0.2]

    def test_non_retryable_failure_stops_immediately(self, no_sleep):
        op = FlakyOperation(ScrapeError("Price not found on page"))
        with pytest.raises(ScrapeError) as exc_info:
            retry(op, RetryPolicy(max_attempts=3), sleep=no_sleep)
        assert op.calls == 1
        assert exc_info.value.category == ErrorCategory.PARSE_ERROR
        assert no_sleep.delays == []

    def test_bot_detection_not_retried(self, no_sleep):
        op = FlakyOperation(ScrapeError("Fetch HTTP 403", http_status=403))
        with pytest.raises(ScrapeError):
            retry(op, RetryPolicy(max_attempts=3), sleep=no_sleep)
        assert op.calls == 1

    def test_recovers_after_transient_failure(self, no_sleep):
        op = FlakyOperation(network_error())
        assert retry(op, RetryPolicy(max_attempts=3, base_delay_ms=0), sleep=no_sleep) == "ok"
        assert op.calls == 2

    def test_custom_retryable_set(self, no_sleep):
        op = FlakyOperation(ScrapeError("Price not found"))
        policy = RetryPolicy(max_attempts=2, base_delay_ms=0,
                             retryable_categories=frozenset({ErrorCategory.PARSE_ERROR}))
        assert retry(op, policy, sleep=no_sleep) == "ok"

    def test_circuit_open_propagates_untouched(self, no_sleep):
        op = FlakyOperation(CircuitOpenError("b", 10.0))
        with pytest.raises(CircuitOpenError):
            retry(op, RetryPolicy(max_attempts=3), sleep=no_sleep)
        assert op.calls == 1

    def test_cancelled_before_first_attempt(self):
        token = CancellationToken()
        token.cancel()
        op = FlakyOperation()
        with pytest.raises(ExtractionCancelled):
            retry(op, RetryPolicy(), cancel=token)
        assert op.calls == 0

    def test_cancel_during_backoff(self):
        token = CancellationToken()

        def op():
            token.cancel()
            raise network_error()

        with pytest.raises(ExtractionCancelled):
            retry(op, RetryPolicy(max_attempts=3, base_delay_ms=60000), cancel=token)


class TestRetryPolicy:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_default_retryable_categories(self):
        policy = RetryPolicy()
        assert policy.is_retryable(ErrorCategory.NETWORK_ERROR)
        assert policy.is_retryable(ErrorCategory.TIMEOUT)
        assert not policy.is_retryable(ErrorCategory.INVALID_PRICE)


class TestComputeDelay:
    def test_exponential_growth(self):
        policy = RetryPolicy(base_delay_ms=1000, jitter_ratio=0)
        assert [compute_delay(policy, n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_capped_at_max_delay(self):
        policy = RetryPolicy(base_delay_ms=1000, jitter_ratio=0, max_delay_ms=3000)
        assert compute_delay(policy, 5) == 3.0

    def test_jitter_bounded_by_ratio(self):
        policy = RetryPolicy(base_delay_ms=1000, jitter_ratio=0.1)
        assert compute_delay(policy, 1, rng=lambda: 0.0) == 1.0
        assert compute_delay(policy, 1, rng=lambda: 0.999) == pytest.approx(1.0999)
