"""
Fault-tolerance layer: error taxonomy, circuit breakers, retry policy,
cancellation and deadlines.
"""

from .cancellation import CancellationToken, Deadline
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitBreakerStatus,
    CircuitState,
    get_default_breaker_registry,
)
from .errors import (
    CircuitOpenError,
    ExtractionCancelled,
    ScrapeError,
    category_of,
    classify,
)
from .retry import TRANSIENT_CATEGORIES, RetryPolicy, compute_delay, retry

__all__ = [
    'CancellationToken',
    'Deadline',
    'CircuitBreaker',
    'CircuitBreakerConfig',
    'CircuitBreakerRegistry',
    'CircuitBreakerStatus',
    'CircuitState',
    'get_default_breaker_registry',
    'CircuitOpenError',
    'ExtractionCancelled',
    'ScrapeError',
    'category_of',
    'classify',
    'TRANSIENT_CATEGORIES',
    'RetryPolicy',
    'compute_delay',
    'retry',
]
