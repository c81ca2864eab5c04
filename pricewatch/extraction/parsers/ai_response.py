"""
AI Extraction Prompt and Response Parser

Prepares page text for the text-extraction model and turns its JSON reply
into a RawExtractionPayload. Price strings are left as text; the pipeline
runs them through the same price parser as every other tier.
"""

import json
import logging
import re
from typing import Any, Dict

from bs4 import BeautifulSoup

from ...models import ErrorCategory, RawExtractionPayload, Tier
from ...resilience import ScrapeError

logger = logging.getLogger(__name__)

NOISE_TAGS = ("script", "style", "noscript", "svg", "iframe", "template")

# Meta tags worth keeping even though they have no visible text
PRICE_META_PROPERTIES = (
    "og:title",
    "og:price:amount",
    "og:price:currency",
    "product:price:amount",
    "product:sale_price:amount",
    "product:availability",
)

SYSTEM_PROMPT = (
    "You extract product pricing from retail web pages. "
    "Reply with a single JSON object and nothing else."
)

USER_PROMPT_TEMPLATE = """Product page: {url}

Find the price a shopper would pay right now for the main product on this page.
Return JSON with exactly these keys:
  "price": current selling price as a string including the currency symbol, or null
  "original_price": the crossed-out regular price if the product is on sale, otherwise null
  "in_stock": true, false, or null if the page does not say

Page content:
{text}
"""

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def clean_page_text(html: str, max_chars: int = 12000) -> str:
    """
    Reduce a page to the text a model needs to find the price.

    Strips scripts, styles and other non-content tags, keeps price-related
    meta tags as "property: value" lines, collapses whitespace and
    truncates to max_chars.
    """
    soup = BeautifulSoup(html, "lxml")

    meta_lines = []
    for prop in PRICE_META_PROPERTIES:
        tag = soup.find("meta", attrs={"property": prop})
        if tag and tag.get("content"):
            meta_lines.append(f"{prop}: {tag['content']}")

    for tag in soup(NOISE_TAGS):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    body = soup.body or soup
    text = " ".join(body.get_text(" ").split())

    parts = [p for p in (title, "\n".join(meta_lines), text) if p]
    return "\n".join(parts)[:max_chars]


def build_prompt(url: str, page_text: str) -> str:
    return USER_PROMPT_TEMPLATE.format(url=url, text=page_text)


def parse_ai_response(raw: str) -> RawExtractionPayload:
    """
    Parse the model's reply into an AI_FALLBACK payload.

    Tolerates replies wrapped in markdown code fences.

    Raises:
        ScrapeError: PARSE_ERROR if the reply is not a JSON object or has no price
    """
    text = _CODE_FENCE_RE.sub("", (raw or "").strip())
    try:
        data: Dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable AI reply: %s", text[:200])
        raise ScrapeError(
            "Could not find price: AI reply is not valid JSON",
            category=ErrorCategory.PARSE_ERROR,
        ) from e

    if not isinstance(data, dict):
        raise ScrapeError(
            "Could not find price: AI reply is not a JSON object",
            category=ErrorCategory.PARSE_ERROR,
        )

    price = data.get("price")
    if price in (None, ""):
        raise ScrapeError("AI extraction: price not found", category=ErrorCategory.PARSE_ERROR)

    original = data.get("original_price")
    in_stock = data.get("in_stock")
    return RawExtractionPayload(
        source=Tier.AI_FALLBACK,
        price_text=str(price),
        original_price_text="" if original in (None, "") else str(original),
        in_stock=in_stock if isinstance(in_stock, bool) else None,
        matched_selector="ai",
    )
