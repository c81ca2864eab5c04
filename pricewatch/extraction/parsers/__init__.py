"""
Page and payload parsers used by the extraction tiers.
"""

from .ai_response import build_prompt, clean_page_text, parse_ai_response
from .shopify_json import backdoor_url, parse_product_json
from .structured_data import StructuredDataParser

__all__ = [
    'StructuredDataParser',
    'backdoor_url',
    'build_prompt',
    'clean_page_text',
    'parse_ai_response',
    'parse_product_json',
]
