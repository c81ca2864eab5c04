"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest

from pricewatch.common.config_loader import EngineSettings
from pricewatch.extraction.registry import RetailerRegistry
from pricewatch.models import RetailerConfig
from pricewatch.resilience import CircuitBreakerRegistry, ScrapeError


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHttpClient:
    """
    Stand-in for HttpClient that serves canned pages by URL.

    A response may be a string (HTML), a dict (JSON) or an exception to raise.
    Every call is recorded so tests can assert on fetch counts.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []

    @property
    def fetch_count(self) -> int:
        return len(self.calls)

    def _serve(self, url):
        self.calls.append(url)
        response = self.pages.get(url)
        if response is None:
            raise ScrapeError("Fetch HTTP 404", http_status=404)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response()
        return response

    def get_text(self, url, timeout, user_agent=None, cancel=None):
        return self._serve(url)

    def get_json(self, url, timeout, user_agent=None, cancel=None):
        return self._serve(url)


def build_response(status: int = 200, body: bytes = b"", encoding: str = "utf-8", chunks=None):
    """Build a mock streamed requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.encoding = encoding
    response.iter_content.return_value = chunks if chunks is not None else [body]
    return response


def build_page(body: str, head: str = "") -> str:
    """Wrap markup in a minimal HTML document."""
    return f"<html><head><title>Product</title>{head}</head><body>{body}</body></html>"


@pytest.fixture
def fake_clock():
    return FakeClock()


class RecordingSleep:
    """Sleep replacement that records requested delays instead of blocking."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def breakers(fake_clock):
    """Fresh breaker registry so state never leaks between tests."""
    return CircuitBreakerRegistry(clock=fake_clock)


@pytest.fixture
def settings():
    """Default engine settings with backoff delays zeroed."""
    s = EngineSettings()
    for tier in s.tiers.values():
        tier.base_delay_ms = 0
        tier.jitter_ratio = 0.0
    return s


@pytest.fixture
def retailer_configs():
    return [
        RetailerConfig(
            domain="oldnavy.gap.com",
            name="Old Navy",
            price_selectors=('[data-test="product-price"]',),
            requires_js_rendering=True,
        ),
        RetailerConfig(
            domain="gap.com",
            name="Gap",
            price_selectors=('[data-test="product-price"]', '.product-price'),
        ),
        RetailerConfig(
            domain="footlocker.com",
            name="Foot Locker",
            price_selectors=('[data-test="product-price"]', '.ProductPrice'),
        ),
        RetailerConfig(
            domain="shoepalace.com",
            name="Shoe Palace",
            price_selectors=('.product-price',),
            sale_price_selectors=('.sale-price',),
            is_json_backdoor_eligible=True,
        ),
        RetailerConfig(
            domain="nike.com",
            name="Nike",
            price_selectors=('[data-test="product-price"]',),
            requires_js_rendering=True,
            requires_anti_bot_bypass=True,
        ),
    ]


@pytest.fixture
def registry(retailer_configs):
    return RetailerRegistry(retailer_configs)


@pytest.fixture
def og_price_html():
    """Page whose only price is the Open Graph meta tag."""
    return build_page(
        "<h1>Air Max 90</h1><p>Free shipping on orders over $50</p>",
        head='<meta property="og:price:amount" content="129.99">',
    )


@pytest.fixture
def jsonld_html():
    """Page with a JSON-LD Product offer and no price markup."""
    return build_page(
        "<h1>Trail Runner</h1>"
        '<script type="application/ld+json">'
        '{"@context": "https://schema.org", "@type": "Product", "name": "Trail Runner",'
        ' "offers": {"@type": "Offer", "price": "89.95", "priceCurrency": "USD",'
        ' "availability": "https://schema.org/OutOfStock"}}'
        "</script>"
    )


@pytest.fixture
def no_price_html():
    """A product page without any recognizable price."""
    return build_page("<h1>Mystery Jacket</h1><p>Call the store for details.</p>" + "<p>filler</p>" * 20)


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def page():
    return build_page


@pytest.fixture
def fake_http():
    """Factory for FakeHttpClient instances."""
    return FakeHttpClient
