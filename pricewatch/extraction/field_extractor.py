"""
Selector-Based Field Extractor

Applies ordered CSS selector candidates to a parsed page. Candidates that
are invalid CSS or match nothing are skipped; meta tags contribute their
content attribute instead of their (empty) text.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from ..common.constants import OUT_OF_STOCK_PHRASES
from ..models import RawExtractionPayload, RetailerConfig, Tier
from .parsers.structured_data import StructuredDataParser
from .price_parser import parse_price
from .registry import (
    GENERIC_AVAILABILITY_SELECTORS,
    GENERIC_ORIGINAL_PRICE_SELECTORS,
    GENERIC_PRICE_SELECTORS,
    GENERIC_SALE_PRICE_SELECTORS,
)

logger = logging.getLogger(__name__)

# Matches per selector worth looking at; '[class*="price"]' can match hundreds
MAX_MATCHES_PER_SELECTOR = 5

# Attributes that carry a value when the element has no text
VALUE_ATTRIBUTES = ("content", "data-price", "data-product-price", "value")


def element_text(element: Tag) -> str:
    """Trimmed text of an element; meta tags (and empty elements) use their value attribute."""
    if element.name == "meta":
        return (element.get("content") or "").strip()

    text = " ".join(element.get_text(" ").split())
    if text:
        return text

    for attr in VALUE_ATTRIBUTES:
        value = element.get(attr)
        if value and str(value).strip():
            return str(value).strip()
    return ""


def iter_field_candidates(
    document: BeautifulSoup,
    selectors: Sequence[str],
) -> Iterator[Tuple[str, str]]:
    """
    Yield (selector, text) for every non-empty match, in selector order.

    Args:
        document: Parsed page
        selectors: Selector candidates in priority order
    """
    for selector in selectors:
        try:
            elements = document.select(selector, limit=MAX_MATCHES_PER_SELECTOR)
        except (SelectorSyntaxError, ValueError, NotImplementedError) as e:
            logger.debug("Skipping invalid selector %r: %s", selector, e)
            continue

        for element in elements:
            text = element_text(element)
            if text:
                yield selector, text


def extract_field(document: BeautifulSoup, selector_candidates: Sequence[str]) -> str:
    """First non-empty trimmed text across the candidates, or ""."""
    for _selector, text in iter_field_candidates(document, selector_candidates):
        return text
    return ""


def is_in_stock(text: Optional[str]) -> bool:
    """False only when the text mentions an out-of-stock phrase."""
    if not text:
        return True
    lowered = text.lower()
    return not any(phrase in lowered for phrase in OUT_OF_STOCK_PHRASES)


def _merge(*groups: Sequence[str]) -> Tuple[str, ...]:
    seen = set()
    merged = []
    for group in groups:
        for selector in group:
            if selector not in seen:
                seen.add(selector)
                merged.append(selector)
    return tuple(merged)


class FieldExtractor:
    """
    Extracts price, sale price, "was" price and availability text for one retailer.

    Retailer selectors are tried first, then the generic ones, then the
    page's JSON-LD Product offer.

    Usage:
        extractor = FieldExtractor(config)
        payload = extractor.extract(soup, Tier.STANDARD_FETCH, html)
    """

    def __init__(self, config: Optional[RetailerConfig] = None):
        self.config = config
        self._structured = StructuredDataParser()

        own_price = config.price_selectors if config else ()
        own_sale = config.sale_price_selectors if config else ()
        own_availability = config.availability_selectors if config else ()

        self.price_selectors = _merge(own_price, GENERIC_PRICE_SELECTORS)
        self.sale_price_selectors = _merge(own_sale or GENERIC_SALE_PRICE_SELECTORS)
        self.original_price_selectors = GENERIC_ORIGINAL_PRICE_SELECTORS
        self.availability_selectors = _merge(own_availability, GENERIC_AVAILABILITY_SELECTORS)

    def extract(
        self,
        document: BeautifulSoup,
        source: Tier,
        html: Optional[str] = None,
        accept: Optional[Callable[[float], bool]] = None,
    ) -> RawExtractionPayload:
        """
        Pull raw field text from a parsed page.

        The price text is the first candidate that parses as a number and
        passes accept(), so a selector matching a label like "Price" or a
        shipping fee doesn't end the search. When no candidate is accepted
        the first parseable one is kept so the caller can report why it
        was rejected. Returns a payload with empty price_text when nothing
        matched.

        Args:
            document: Parsed page
            source: Tier that produced the page
            html: Raw HTML, kept on the payload for the AI fallback
            accept: Optional predicate on the parsed price
        """
        payload = RawExtractionPayload(source=source, html=html)

        match = self._first_price(document, self.price_selectors, accept)
        if match:
            payload.matched_selector, payload.price_text = match

        sale = self._first_price(document, self.sale_price_selectors, accept)
        if sale:
            payload.sale_price_text = sale[1]

        original = self._first_price(document, self.original_price_selectors, None)
        if original:
            payload.original_price_text = original[1]

        payload.availability_text = extract_field(document, self.availability_selectors)
        if payload.availability_text:
            payload.in_stock = is_in_stock(payload.availability_text)

        price_ok = bool(payload.price_text) and (accept is None or accept(parse_price(payload.price_text)))
        if not price_ok or payload.in_stock is None:
            self._apply_structured_data(document, payload, need_price=not price_ok, accept=accept)

        return payload

    @staticmethod
    def _first_price(
        document: BeautifulSoup,
        selectors: Sequence[str],
        accept: Optional[Callable[[float], bool]],
    ) -> Optional[Tuple[str, str]]:
        first = None
        for selector, text in iter_field_candidates(document, selectors):
            value = parse_price(text)
            if value is None:
                continue
            if first is None:
                first = (selector, text)
            if accept is None or accept(value):
                return selector, text
        return first

    def _apply_structured_data(
        self,
        document: BeautifulSoup,
        payload: RawExtractionPayload,
        need_price: bool,
        accept: Optional[Callable[[float], bool]],
    ) -> None:
        data = self._structured.parse(document)
        if not data:
            return

        if need_price:
            price = self._structured.extract_price(data)
            value = parse_price(price)
            if value is not None and (not payload.price_text or accept is None or accept(value)):
                payload.price_text = price
                payload.matched_selector = "json-ld"
                logger.debug("Price from JSON-LD offer: %s", price)

        if payload.in_stock is None:
            payload.in_stock = self._structured.extract_in_stock(data)
            if not payload.availability_text:
                payload.availability_text = self._structured.extract_availability(data)
