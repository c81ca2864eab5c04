"""
Headless Render Service Client

Talks to a browserless-style rendering service over HTTP:

- render():  POST {url, gotoOptions, ...} to the content endpoint, which
             returns the page HTML after JavaScript has run.
- unblock(): POST to the unblock endpoint through a residential proxy,
             which returns {"content": "<html>..."} for bot-protected pages.

Rendered HTML is cached briefly to avoid paying twice for the same page.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

import requests

from ..models import ErrorCategory
from ..resilience import CancellationToken, ScrapeError
from .http_client import send_request

logger = logging.getLogger(__name__)

# Anything shorter is an error page or an empty shell, not a product page
MIN_HTML_LENGTH = 100


class RenderClient:
    """
    Client for the rendering service.

    Usage:
        client = RenderClient(
            render_url="https://chrome.browserless.io/content",
            unblock_url="https://production-sfo.browserless.io/chromium/unblock",
            token="...",
        )
        html = client.render(url, timeout=30)
    """

    def __init__(
        self,
        render_url: str,
        unblock_url: str = "",
        token: str = "",
        session: Optional[requests.Session] = None,
        wait_ms: int = 2000,
        cache_ttl_s: float = 300.0,
        cache_max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.render_url = render_url
        self.unblock_url = unblock_url
        self.token = token
        self.session = session or requests.Session()
        self.wait_ms = wait_ms
        self.cache_ttl_s = cache_ttl_s
        self.cache_max_entries = cache_max_entries
        self._clock = clock
        self._cache: "OrderedDict[str, tuple[float, str]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    @property
    def can_render(self) -> bool:
        return bool(self.render_url)

    @property
    def can_unblock(self) -> bool:
        return bool(self.unblock_url)

    def close(self):
        self.session.close()

    def render(self, url: str, timeout: float, cancel: Optional[CancellationToken] = None) -> str:
        """Return JavaScript-rendered HTML for url."""
        if not self.can_render:
            raise ScrapeError("Render service not configured", category=ErrorCategory.UNKNOWN)

        cached = self._cache_get(url)
        if cached is not None:
            logger.debug("Render cache hit for %s", url)
            return cached

        payload = {
            "url": url,
            "gotoOptions": {"waitUntil": "networkidle2", "timeout": int(timeout * 1000)},
            "waitForTimeout": self.wait_ms,
            "rejectResourceTypes": ["image", "media", "font"],
        }
        logger.info("Rendering %s via render service", url)
        html = send_request(
            self.session, "POST", self.render_url, timeout, cancel,
            label="Render service", clock=self._clock, json=payload, params=self._params(),
        )
        self._check_html(html, "Render service")
        self._cache_put(url, html)
        return html

    def unblock(self, url: str, timeout: float, cancel: Optional[CancellationToken] = None) -> str:
        """Return HTML for url fetched through the residential-proxy unblock endpoint."""
        if not self.can_unblock:
            raise ScrapeError("Unblock service not configured", category=ErrorCategory.UNKNOWN)

        payload = {
            "url": url,
            "content": True,
            "cookies": False,
            "screenshot": False,
            "browserWSEndpoint": False,
        }
        logger.info("Fetching %s via unblock service (residential proxy)", url)
        body = send_request(
            self.session, "POST", self.unblock_url, timeout, cancel,
            label="Unblock service", clock=self._clock, json=payload, params=self._params(proxy="residential"),
        )
        try:
            html = json.loads(body).get("content") or ""
        except (json.JSONDecodeError, AttributeError) as e:
            raise ScrapeError(
                "Unblock service returned a malformed response",
                category=ErrorCategory.NETWORK_ERROR,
            ) from e
        self._check_html(html, "Unblock service")
        return html

    def _params(self, **extra) -> dict:
        params = dict(extra)
        if self.token:
            params["token"] = self.token
        return params

    @staticmethod
    def _check_html(html: str, label: str) -> None:
        if not html or len(html) < MIN_HTML_LENGTH:
            raise ScrapeError(
                f"{label} returned empty or invalid HTML",
                category=ErrorCategory.NETWORK_ERROR,
            )

    def _cache_get(self, url: str) -> Optional[str]:
        with self._cache_lock:
            entry = self._cache.get(url)
            if entry is None:
                return None
            stored_at, html = entry
            if self._clock() - stored_at >= self.cache_ttl_s:
                del self._cache[url]
                return None
            return html

    def _cache_put(self, url: str, html: str) -> None:
        with self._cache_lock:
            self._cache[url] = (self._clock(), html)
            self._cache.move_to_end(url)
            while len(self._cache) > self.cache_max_entries:
                self._cache.popitem(last=False)
