"""
HTTP Client

Plain GET fetching with browser-like headers. Every call carries an
explicit timeout that bounds the whole exchange, bodies are streamed so a
cancellation can abort a slow download, and every transport problem
surfaces as a classified ScrapeError.
"""

from __future__ import annotations

import codecs
import json
import logging
import random
import time
from contextlib import closing
from typing import Any, Callable, Optional, Sequence

import requests

from ..common.constants import BROWSER_HEADERS, USER_AGENTS
from ..models import ErrorCategory
from ..resilience import CancellationToken, ScrapeError, classify

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
MAX_BODY_BYTES = 8 * 1024 * 1024


def response_encoding(response: requests.Response) -> str:
    """The response charset, or utf-8 when it is missing or unknown to Python."""
    encoding = response.encoding or "utf-8"
    try:
        codecs.lookup(encoding)
    except LookupError:
        logger.debug("Unknown response charset %r, decoding as utf-8", encoding)
        return "utf-8"
    return encoding


def read_response_text(
    response: requests.Response,
    cancel: Optional[CancellationToken] = None,
    max_bytes: int = MAX_BODY_BYTES,
    deadline_at: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
    label: str = "Request",
) -> str:
    """
    Read a streamed response body, checking for cancellation between chunks.

    Bodies larger than max_bytes are truncated (product pages never need
    more than the first few megabytes). When deadline_at (a clock() value)
    passes before the body is complete, the read fails as TIMEOUT; the
    socket read timeout alone does not stop a server trickling data.
    """
    chunks = []
    size = 0
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        if cancel is not None:
            cancel.raise_if_cancelled()
        if deadline_at is not None and clock() > deadline_at:
            raise ScrapeError(
                f"{label} timed out while reading the response body",
                category=ErrorCategory.TIMEOUT,
            )
        if not chunk:
            continue
        chunks.append(chunk)
        size += len(chunk)
        if size >= max_bytes:
            logger.debug("Response body truncated at %d bytes", size)
            break

    return b"".join(chunks).decode(response_encoding(response), errors="replace")


def send_request(
    session: requests.Session,
    method: str,
    url: str,
    timeout: float,
    cancel: Optional[CancellationToken] = None,
    label: str = "Request",
    clock: Callable[[], float] = time.monotonic,
    **kwargs,
) -> str:
    """
    Send a request and return the body text, raising ScrapeError on failure.

    Args:
        session: requests session to use
        method: HTTP method
        url: Target URL
        timeout: Budget in seconds for the whole exchange (also the
                 connect and per-read socket timeout)
        cancel: Optional cancellation token
        label: Prefix for error messages (e.g. "Render service")
        clock: Monotonic clock for the body-read deadline
        **kwargs: Passed through to session.request (headers, json, params)

    Raises:
        ScrapeError: On non-2xx status, timeout or transport failure
        ExtractionCancelled: If cancelled while reading the body
    """
    if cancel is not None:
        cancel.raise_if_cancelled()

    deadline_at = clock() + timeout
    try:
        response = session.request(method, url, timeout=timeout, stream=True, **kwargs)
        with closing(response):
            status = response.status_code
            if status >= 400:
                raise ScrapeError(f"{label} HTTP {status}", http_status=status)
            return read_response_text(
                response, cancel, deadline_at=deadline_at, clock=clock, label=label,
            )
    except requests.exceptions.Timeout as e:
        raise ScrapeError(
            f"{label} timed out after {timeout:.1f}s", category=ErrorCategory.TIMEOUT
        ) from e
    except requests.exceptions.RequestException as e:
        raise ScrapeError(
            f"{label} network fetch failed: {type(e).__name__}: {str(e)[:200]}",
            category=classify(e),
        ) from e


class HttpClient:
    """
    Browser-like HTTP fetcher shared across extraction calls.

    Usage:
        client = HttpClient()
        html = client.get_text("https://www.footlocker.com/product/...", timeout=15)
        data = client.get_json("https://shop.example.com/products/tee.json", timeout=10)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        user_agents: Sequence[str] = USER_AGENTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session or requests.Session()
        self.user_agents = tuple(user_agents)
        self._clock = clock

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def close(self):
        self.session.close()

    def build_headers(self, user_agent: Optional[str] = None, accept: Optional[str] = None) -> dict:
        """Standard browser headers with a rotating (or pinned) User-Agent."""
        headers = dict(BROWSER_HEADERS)
        headers["User-Agent"] = user_agent or random.choice(self.user_agents)
        if accept:
            headers["Accept"] = accept
        return headers

    def get_text(
        self,
        url: str,
        timeout: float,
        user_agent: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """Fetch a page and return its HTML."""
        logger.debug("GET %s (timeout=%.1fs)", url, timeout)
        return send_request(
            self.session, "GET", url, timeout, cancel,
            label="Fetch", clock=self._clock, headers=self.build_headers(user_agent),
        )

    def get_json(
        self,
        url: str,
        timeout: float,
        user_agent: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Any:
        """Fetch a structured-data endpoint and decode it as JSON."""
        logger.debug("GET (json) %s (timeout=%.1fs)", url, timeout)
        text = send_request(
            self.session, "GET", url, timeout, cancel,
            label="Fetch", clock=self._clock,
            headers=self.build_headers(user_agent, accept="application/json"),
        )
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ScrapeError(
                f"Could not find product JSON: response is not valid JSON ({e.msg})",
                category=ErrorCategory.PARSE_ERROR,
            ) from e
