"""
Structured Data Parser

Extracts offer information from JSON-LD structured data (schema.org).
Used when no CSS selector yields a price: most storefronts embed a
Product object for search engines even when the visible price is built
by JavaScript.

Supported schema types: Product, ProductGroup (first variant with offers)
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_IN_STOCK_VALUES = {"instock", "limitedavailability", "onlineonly", "instoreonly", "preorder", "presale"}
_OUT_OF_STOCK_VALUES = {"outofstock", "soldout", "discontinued"}


class StructuredDataParser:
    """
    Parses JSON-LD Product offers from HTML pages.

    Usage:
        parser = StructuredDataParser()
        data = parser.parse(soup)
        price = parser.extract_price(data)
        in_stock = parser.extract_in_stock(data)
    """

    SUPPORTED_TYPES = ('Product', 'ProductGroup')

    def parse(self, soup: BeautifulSoup) -> Dict[str, Any]:
        """
        Find the first Product object in the page's JSON-LD blocks.

        Handles top-level lists and @graph containers.

        Returns:
            Product data as dictionary, or empty dict if not found
        """
        for script in soup.find_all('script', type='application/ld+json'):
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed JSON-LD block")
                continue

            for node in self._iter_nodes(data):
                if self._is_product(node):
                    return node

        return {}

    def extract_price(self, data: Dict[str, Any]) -> str:
        """
        Current price from the first offer.

        Returns:
            Price as string (e.g., "129.99") or empty string
        """
        offer = self._first_offer(data)
        if not offer:
            return ""

        for key in ("price", "lowPrice"):
            value = offer.get(key)
            if value not in (None, ""):
                return str(value)

        spec = offer.get("priceSpecification")
        if isinstance(spec, list):
            spec = spec[0] if spec else None
        if isinstance(spec, dict) and spec.get("price") not in (None, ""):
            return str(spec["price"])

        return ""

    def extract_availability(self, data: Dict[str, Any]) -> str:
        """Raw schema.org availability value of the first offer (e.g. "https://schema.org/InStock")."""
        offer = self._first_offer(data)
        if not offer:
            return ""
        return str(offer.get("availability") or "")

    def extract_in_stock(self, data: Dict[str, Any]) -> Optional[bool]:
        """
        Map the first offer's availability to a stock flag.

        Returns:
            True/False, or None when the page doesn't say
        """
        value = self.extract_availability(data)
        if not value:
            return None
        # "https://schema.org/OutOfStock" -> "outofstock"
        key = value.rstrip("/").rsplit("/", 1)[-1].replace(" ", "").lower()
        if key in _OUT_OF_STOCK_VALUES:
            return False
        if key in _IN_STOCK_VALUES:
            return True
        return None

    def _first_offer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data:
            return {}

        offers = self._as_list(data.get("offers"))
        if not offers and data.get("hasVariant"):
            for variant in self._as_list(data.get("hasVariant")):
                if isinstance(variant, dict) and variant.get("offers"):
                    offers = self._as_list(variant["offers"])
                    break

        for offer in offers:
            if not isinstance(offer, dict):
                continue
            # AggregateOffer nests the individual offers
            nested = self._as_list(offer.get("offers"))
            if nested and "price" not in offer and "lowPrice" not in offer:
                return nested[0] if isinstance(nested[0], dict) else {}
            return offer

        return {}

    def _is_product(self, node: Any) -> bool:
        if not isinstance(node, dict):
            return False
        node_type = node.get("@type")
        types = node_type if isinstance(node_type, list) else [node_type]
        return any(t in self.SUPPORTED_TYPES for t in types)

    def _iter_nodes(self, data: Any) -> Iterator[Any]:
        if isinstance(data, list):
            for item in data:
                yield from self._iter_nodes(item)
        elif isinstance(data, dict):
            yield data
            if "@graph" in data:
                yield from self._iter_nodes(data["@graph"])

    @staticmethod
    def _as_list(value: Any) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]
