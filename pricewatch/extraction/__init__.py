"""
Price extraction: retailer registry, selector extraction, price parsing,
the tiered pipeline and batch checking.
"""

from .batch_checker import BatchPriceChecker
from .field_extractor import FieldExtractor, extract_field, is_in_stock, iter_field_candidates
from .pipeline import PriceExtractionPipeline, build_pipeline
from .price_drop import (
    PriceDrop,
    days_since_check,
    detect_price_drop,
    is_price_stale,
    should_disable_tracking,
)
from .price_parser import parse_price, validate_price
from .registry import (
    GENERIC_AVAILABILITY_SELECTORS,
    GENERIC_ORIGINAL_PRICE_SELECTORS,
    GENERIC_PRICE_SELECTORS,
    GENERIC_SALE_PRICE_SELECTORS,
    RetailerRegistry,
    UrlValidation,
    get_default_registry,
    validate_product_url,
)

__all__ = [
    'BatchPriceChecker',
    'FieldExtractor',
    'extract_field',
    'is_in_stock',
    'iter_field_candidates',
    'PriceExtractionPipeline',
    'build_pipeline',
    'PriceDrop',
    'days_since_check',
    'detect_price_drop',
    'is_price_stale',
    'should_disable_tracking',
    'parse_price',
    'validate_price',
    'GENERIC_AVAILABILITY_SELECTORS',
    'GENERIC_ORIGINAL_PRICE_SELECTORS',
    'GENERIC_PRICE_SELECTORS',
    'GENERIC_SALE_PRICE_SELECTORS',
    'RetailerRegistry',
    'UrlValidation',
    'get_default_registry',
    'validate_product_url',
]
