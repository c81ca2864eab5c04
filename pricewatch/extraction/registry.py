"""
Retailer Registry

Maps product URLs to retailer extraction configs. Lookup is a substring
match of the config domain against the URL hostname, in registration
order, so specific domains (oldnavy.gap.com) must be registered before
generic ones (gap.com).

The registry holds an immutable tuple of configs. reload() swaps the whole
tuple in one assignment, so concurrent lookups see either the old or the
new set, never a mix.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple
from urllib.parse import urlparse

from ..common.config_loader import load_retailer_entries
from ..models import RetailerConfig

logger = logging.getLogger(__name__)

# Appended after a retailer's own selectors, and used alone for unknown sites
GENERIC_PRICE_SELECTORS: Tuple[str, ...] = (
    '[itemprop="price"]',
    'meta[property="product:price:amount"]',
    'meta[property="og:price:amount"]',
    '.price',
    # Struck-through "was" prices also carry "price" in their class
    '[class*="price"]:not([class*="original"]):not([class*="was"]):not([class*="compare"])',
    '[data-price]',
    '[data-product-price]',
)

GENERIC_SALE_PRICE_SELECTORS: Tuple[str, ...] = (
    'meta[property="product:sale_price:amount"]',
    '.price-current',
    '.sale-price',
    '.price--sale',
    '.discounted-price',
    '[data-testid="sale-price"]',
    '[class*="sale"]',
)

GENERIC_ORIGINAL_PRICE_SELECTORS: Tuple[str, ...] = (
    '.price-original',
    '.price-was',
    '[class*="original-price"]',
    '.was-price',
    '.compare-at-price',
)

GENERIC_AVAILABILITY_SELECTORS: Tuple[str, ...] = (
    'meta[property="product:availability"]',
    'meta[property="og:availability"]',
    '.stock-status',
    '.availability',
    '.in-stock',
    '.out-of-stock',
    '[data-testid="stock"]',
)

# Path fragments typical of product pages on unknown retailers
PRODUCT_URL_PATTERNS: Tuple[str, ...] = (
    "/product/",
    "/item/",
    "/p/",
    "/pd/",
    "/dp/",
    "/browse/",
    "/collections/",
    "/products/",
    "?pid=",
    "/buy/",
)


def normalize_hostname(url: str) -> Optional[str]:
    """Lower-cased hostname without a leading "www.", or None if url has none."""
    try:
        hostname = urlparse(url.strip()).hostname
    except (ValueError, AttributeError):
        return None
    if not hostname:
        return None
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def is_http_url(url: str) -> bool:
    """True if url is an absolute http(s) URL with a valid hostname and port."""
    try:
        parsed = urlparse(url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return False
        if any(ch.isspace() for ch in parsed.netloc):
            return False
        # Raises ValueError for ports outside 0-65535
        parsed.port
        return True
    except (ValueError, AttributeError):
        return False


class RetailerRegistry:
    """
    Ordered, read-mostly collection of RetailerConfig.

    Usage:
        registry = RetailerRegistry.from_config()
        config = registry.lookup("https://www.nike.com/t/air-max-90/CN8490-002")
    """

    def __init__(self, configs: Iterable[RetailerConfig] = ()):
        self._configs: Tuple[RetailerConfig, ...] = tuple(configs)

    @classmethod
    def from_config(cls, filename: str = "retailers.yaml") -> "RetailerRegistry":
        """Build a registry from the retailers list in a YAML config file."""
        entries = load_retailer_entries(filename)
        configs = [RetailerConfig.from_dict(entry) for entry in entries]
        logger.info("Loaded %d retailer configs from %s", len(configs), filename)
        return cls(configs)

    @property
    def configs(self) -> Tuple[RetailerConfig, ...]:
        return self._configs

    def __len__(self) -> int:
        return len(self._configs)

    def __iter__(self) -> Iterator[RetailerConfig]:
        return iter(self._configs)

    def lookup(self, url: str) -> Optional[RetailerConfig]:
        """Return the first config whose domain occurs in the URL's hostname."""
        hostname = normalize_hostname(url)
        if hostname is None:
            return None
        for config in self._configs:
            if config.domain in hostname:
                return config
        return None

    def reload(self, configs: Iterable[RetailerConfig]) -> None:
        """Replace every config at once."""
        new_configs = tuple(configs)
        self._configs = new_configs
        logger.info("Retailer registry reloaded (%d configs)", len(new_configs))


_default_registry: Optional[RetailerRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> RetailerRegistry:
    """YAML-backed registry, loaded on first use."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = RetailerRegistry.from_config()
        return _default_registry


@dataclass(frozen=True)
class UrlValidation:
    """Outcome of validate_product_url()."""
    status: str                    # "success", "warning" or "error"
    message: str
    can_save: bool
    retailer: Optional[str] = None


def validate_product_url(url: str, registry: Optional[RetailerRegistry] = None) -> UrlValidation:
    """
    Quick, offline check of a URL before it is tracked.

    Only malformed URLs are errors. Unknown retailers are warnings, since
    the generic selectors often still work.
    """
    if not url or not url.strip():
        return UrlValidation("error", "URL is empty", can_save=False)

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return UrlValidation("error", "Invalid URL format - please enter a complete URL", can_save=False)

    if parsed.scheme not in ("http", "https"):
        return UrlValidation("error", "URL must start with http:// or https://", can_save=False)
    if not parsed.hostname:
        return UrlValidation("error", "Invalid URL format - please enter a complete URL", can_save=False)

    registry = registry if registry is not None else get_default_registry()
    config = registry.lookup(url)
    if config is not None:
        js_info = " (JS rendering enabled)" if config.requires_js_rendering else ""
        return UrlValidation(
            "success",
            f"{config.name} is supported{js_info}",
            can_save=True,
            retailer=config.name,
        )

    url_lower = url.lower()
    if any(pattern in url_lower for pattern in PRODUCT_URL_PATTERNS):
        return UrlValidation(
            "warning",
            "Unknown retailer - tracking might work, but not guaranteed",
            can_save=True,
        )

    return UrlValidation(
        "warning",
        "This doesn't look like a product page - tracking may fail",
        can_save=True,
    )
