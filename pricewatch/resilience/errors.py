"""
Error taxonomy and classification.

Maps low-level failures (HTTP status codes, transport exceptions, error
messages) onto the closed ErrorCategory set. The category drives both
monitoring and the pipeline's retry/fallback decisions.
"""

from __future__ import annotations

import logging

import requests

from ..models import ErrorCategory

logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = ("timeout", "timed out")
_PARSE_MARKERS = ("price not found", "no price found", "could not find")
_INVALID_PRICE_MARKERS = ("validation failed", "invalid price")
_NETWORK_MARKERS = ("fetch", "network", "connection")


class ScrapeError(Exception):
    """
    A classified scraping failure.

    Attributes:
        category: ErrorCategory (classified from message/status if not given)
        http_status: HTTP status code, if the failure came from a response
        html: Page HTML fetched before the failure, if any (lets the AI
              fallback tier reuse it)
        attempts: Number of attempts made before giving up (set by retry)
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory | None = None,
        http_status: int | None = None,
        html: str | None = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.html = html
        self.attempts = 1
        self.category = category or classify(message, http_status)


class CircuitOpenError(Exception):
    """Raised when a circuit breaker rejects a call without running it."""

    def __init__(self, name: str, retry_in_s: float, last_category: ErrorCategory | None = None):
        self.name = name
        self.retry_in_s = retry_in_s
        self.last_category = last_category
        super().__init__(
            f"Circuit breaker {name} is open; retrying in {max(retry_in_s, 0.0):.1f}s"
        )


class ExtractionCancelled(Exception):
    """Raised when the caller cancels an extraction in flight."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, message: str = "cancelled"):
        super().__init__(message)


def classify(raw_error: str | BaseException, http_status: int | None = None) -> ErrorCategory:
    """
    Classify a failure into the ErrorCategory taxonomy.

    Decision order: status 403/429, status >= 500, timeout, missing price,
    failed validation, transport failure, otherwise UNKNOWN.

    Args:
        raw_error: Error message or exception
        http_status: HTTP status code, if known

    Returns:
        ErrorCategory
    """
    if isinstance(raw_error, ScrapeError):
        if http_status is None:
            http_status = raw_error.http_status
    if isinstance(raw_error, ExtractionCancelled):
        return ErrorCategory.TIMEOUT

    if http_status in (403, 429):
        return ErrorCategory.BOT_DETECTION
    if http_status is not None and http_status >= 500:
        return ErrorCategory.NETWORK_ERROR

    if isinstance(raw_error, requests.exceptions.Timeout):
        return ErrorCategory.TIMEOUT
    if isinstance(raw_error, requests.exceptions.ConnectionError):
        return ErrorCategory.NETWORK_ERROR

    message = str(raw_error).lower()

    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return ErrorCategory.TIMEOUT
    if any(marker in message for marker in _PARSE_MARKERS):
        return ErrorCategory.PARSE_ERROR
    if any(marker in message for marker in _INVALID_PRICE_MARKERS):
        return ErrorCategory.INVALID_PRICE
    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorCategory.NETWORK_ERROR
    if isinstance(raw_error, requests.exceptions.RequestException):
        return ErrorCategory.NETWORK_ERROR

    logger.warning(
        "Unclassified scraping error (status=%s, type=%s): %s",
        http_status, type(raw_error).__name__, str(raw_error)[:300],
    )
    return ErrorCategory.UNKNOWN


def category_of(exc: BaseException) -> ErrorCategory:
    """Return the category carried by an exception, classifying it if needed."""
    category = getattr(exc, "category", None)
    if isinstance(category, ErrorCategory):
        return category
    return classify(exc)
