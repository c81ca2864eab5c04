"""
Price Parser & Validator

Turns scraped price text ("$1,299.00", "99,99 €", "1.234,56") into a float
and rejects values that are almost certainly scraping mistakes.
"""

import math
import re
from typing import Optional

from ..common.constants import MAX_MARKUP_RATIO, MAX_VALID_PRICE, MIN_VALID_PRICE

_NON_NUMERIC_RE = re.compile(r"[^0-9.,]")
_COMMA_DECIMAL_RE = re.compile(r",(\d{2})$")


def parse_price(text: Optional[str]) -> Optional[float]:
    """
    Parse a price string into a number.

    Keeps only digits, dots and commas. A trailing ",dd" marks a comma
    decimal separator (European format), so every other dot or comma is a
    thousands separator. Otherwise commas are thousands separators.

    Args:
        text: Raw price text

    Returns:
        Parsed price, or None for empty, zero or unparseable input

    Examples:
        parse_price("$99.99")   -> 99.99
        parse_price("99,99 €")  -> 99.99
        parse_price("¥9,999")   -> 9999.0
        parse_price("1.234,56") -> 1234.56
    """
    if not text:
        return None

    cleaned = _NON_NUMERIC_RE.sub("", str(text))

    match = _COMMA_DECIMAL_RE.search(cleaned)
    if match:
        whole = re.sub(r"[.,]", "", cleaned[:match.start()])
        cleaned = f"{whole}.{match.group(1)}"
    else:
        cleaned = cleaned.replace(",", "")

    # Sentence punctuation around the number ("Now $49.99.")
    cleaned = cleaned.strip(".")

    try:
        price = float(cleaned)
    except ValueError:
        return None

    if price != price or price == 0:
        return None
    return price


def validate_price(price: Optional[float], retail_price_hint: Optional[float] = None) -> bool:
    """
    Check that a parsed price is plausible.

    Rejects NaN and infinite values, non-positive prices, prices below
    MIN_VALID_PRICE (usually cents read as dollars), prices above
    MAX_VALID_PRICE, and prices more than MAX_MARKUP_RATIO times the known
    retail price (usually the wrong number on the page).
    """
    if price is None or not math.isfinite(price) or price <= 0:
        return False
    if price > MAX_VALID_PRICE:
        return False
    if price < MIN_VALID_PRICE:
        return False
    if retail_price_hint and retail_price_hint > 0 and price > retail_price_hint * MAX_MARKUP_RATIO:
        return False
    return True
