"""
Shared constants for the price engine.

Single source of truth for price bounds, stock phrases and browser headers.
"""

# Price sanity bounds (in the listing currency)
MIN_VALID_PRICE = 1.0
MAX_VALID_PRICE = 50000.0
# A scraped price above hint * ratio is assumed to be an unrelated number
MAX_MARKUP_RATIO = 2.0

# Availability text containing any of these means the product is not buyable
OUT_OF_STOCK_PHRASES = ("out of stock", "sold out", "unavailable")

USER_AGENTS = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Referer": "https://www.google.com/",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}
