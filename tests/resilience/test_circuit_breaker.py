"""Tests for pricewatch/resilience/circuit_breaker.py"""

import pytest

from pricewatch.models import ErrorCategory
from pricewatch.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from pricewatch.resilience.errors import CircuitOpenError, ExtractionCancelled, ScrapeError


def fail(category=ErrorCategory.NETWORK_ERROR):
    raise ScrapeError("boom", category=category)


@pytest.fixture
def breaker(fake_clock):
    config = CircuitBreakerConfig(failure_threshold=3, success_threshold=2, timeout=30.0)
    return CircuitBreaker("price-scrape:a.com:standard_fetch", config, clock=fake_clock)


def trip(breaker, times=3):
    for _ in range(times):
        with pytest.raises(ScrapeError):
            breaker.call(fail)


class TestClosedState:
    def test_passes_results_through(self, breaker):
        assert breaker.call(lambda x: x * 2, 21) == 42
        assert breaker.state == CircuitState.CLOSED

    def test_stays_closed_below_threshold(self, breaker):
        trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.status().consecutive_failures == 2

    def test_success_resets_failure_count(self, breaker):
        trip(breaker, 2)
        breaker.call(lambda: "ok")
        trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

    def test_opens_at_threshold(self, breaker):
        trip(breaker)
        assert breaker.state == CircuitState.OPEN
        assert breaker.status().last_error_category == ErrorCategory.NETWORK_ERROR


class TestOpenState:
    def test_rejects_without_calling(self, breaker):
        trip(breaker)
        calls = []
        with pytest.raises(CircuitOpenError) as exc_info:
            breaker.call(lambda: calls.append(1))
        assert calls == []
        assert exc_info.value.retry_in_s == pytest.approx(30.0)
        assert exc_info.value.last_category == ErrorCategory.NETWORK_ERROR

    def test_half_open_after_timeout(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(30.0)
        assert breaker.call(lambda: "probe") == "probe"
        assert breaker.state == CircuitState.HALF_OPEN


class TestHalfOpenState:
    def test_closes_after_success_threshold(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(31.0)
        breaker.call(lambda: 1)
        breaker.call(lambda: 2)
        status = breaker.status()
        assert status.state == CircuitState.CLOSED
        assert status.consecutive_failures == 0

    def test_failure_reopens(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(31.0)
        with pytest.raises(ScrapeError):
            breaker.call(fail)
        assert breaker.state == CircuitState.OPEN
        # Cooldown restarts from the reopen
        with pytest.raises(CircuitOpenError):
            breaker.call(lambda: 1)

    def test_limits_concurrent_probes(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(31.0)

        def nested_probe():
            with pytest.raises(CircuitOpenError):
                breaker.call(lambda: "second")
            return "first"

        assert breaker.call(nested_probe) == "first"


class TestCancellation:
    def test_cancellation_not_counted_as_failure(self, breaker):
        def cancelled():
            raise ExtractionCancelled()

        for _ in range(5):
            with pytest.raises(ExtractionCancelled):
                breaker.call(cancelled)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.status().consecutive_failures == 0


class TestManualControls:
    def test_record_failure_and_reset(self, breaker):
        for _ in range(3):
            breaker.record_failure(ErrorCategory.TIMEOUT)
        assert breaker.state == CircuitState.OPEN
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED


class TestCircuitBreakerRegistry:
    def test_same_name_same_breaker(self, breakers):
        assert breakers.get("a") is breakers.get("a")
        assert breakers.get("a") is not breakers.get("b")

    def test_breakers_are_isolated(self, fake_clock):
        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=1), clock=fake_clock)
        with pytest.raises(ScrapeError):
            registry.get("price-scrape:a.com:standard_fetch").call(fail)
        assert registry.get("price-scrape:a.com:standard_fetch").state == CircuitState.OPEN
        assert registry.get("price-scrape:b.com:standard_fetch").state == CircuitState.CLOSED

    def test_statuses_and_reset_all(self, fake_clock):
        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=1), clock=fake_clock)
        with pytest.raises(ScrapeError):
            registry.get("x").call(fail)
        assert registry.statuses()["x"].state == CircuitState.OPEN
        registry.reset_all()
        assert registry.statuses()["x"].state == CircuitState.CLOSED
        assert "x" in registry
