"""
Data models for price extraction.

This module contains pure data classes with no business logic.
"""

from .retailer import RetailerConfig
from .result import (
    ErrorCategory,
    ExtractionAttempt,
    PriceExtractionResult,
    RawExtractionPayload,
    Tier,
    utc_now,
)

__all__ = [
    'RetailerConfig',
    'Tier',
    'ErrorCategory',
    'RawExtractionPayload',
    'ExtractionAttempt',
    'PriceExtractionResult',
    'utc_now',
]
