"""
Shopify Product JSON Parser

Shopify storefronts serve every product page as JSON when ".json" is
appended to the product path:

    https://shop.example.com/products/twist-bralette
    https://shop.example.com/products/twist-bralette.json

The first variant carries the price, the crossed-out compare_at_price and
(on most themes) an available flag. No HTML parsing is involved.
"""

from typing import Any, Dict
from urllib.parse import urlsplit, urlunsplit

from ...models import ErrorCategory, RawExtractionPayload, Tier
from ...resilience import ScrapeError


def backdoor_url(product_url: str) -> str:
    """Product JSON endpoint for a product page URL (query and fragment dropped)."""
    parts = urlsplit(product_url.strip())
    path = parts.path.rstrip("/")
    if not path.endswith(".json"):
        path += ".json"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def parse_product_json(data: Any) -> RawExtractionPayload:
    """
    Read price fields from a product JSON document.

    Raises:
        ScrapeError: PARSE_ERROR when the document has no product or variant price
    """
    product = data.get("product") if isinstance(data, dict) else None
    if not isinstance(product, dict):
        raise ScrapeError(
            "Could not find product in JSON response", category=ErrorCategory.PARSE_ERROR
        )

    variants = product.get("variants") or []
    variant: Dict[str, Any] = variants[0] if variants and isinstance(variants[0], dict) else {}
    price = variant.get("price")
    if price in (None, ""):
        raise ScrapeError(
            "Could not find variant price in product JSON", category=ErrorCategory.PARSE_ERROR
        )

    compare_at = variant.get("compare_at_price")
    available = variant.get("available")

    return RawExtractionPayload(
        source=Tier.JSON_BACKDOOR,
        price_text=str(price),
        original_price_text="" if compare_at in (None, "") else str(compare_at),
        in_stock=available if isinstance(available, bool) else None,
        matched_selector="product.variants[0].price",
    )
