"""
Extraction result models.

Pure data classes describing tier attempts and the pipeline's final output.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class Tier(Enum):
    """Extraction strategies, declared in pipeline order."""
    JSON_BACKDOOR = "json_backdoor"
    STANDARD_FETCH = "standard_fetch"
    RENDERED_FETCH = "rendered_fetch"
    UNBLOCKED_FETCH = "unblocked_fetch"
    AI_FALLBACK = "ai_fallback"


class ErrorCategory(Enum):
    """Closed failure taxonomy used for monitoring and tier fallback."""
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"
    BOT_DETECTION = "bot_detection"
    TIMEOUT = "timeout"
    INVALID_PRICE = "invalid_price"
    UNKNOWN = "unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RawExtractionPayload:
    """
    Untyped output of a single tier, tagged with the tier that produced it.

    Only lives inside a tier: the pipeline validates it into a
    PriceExtractionResult before anything else sees it.
    """
    source: Tier
    price_text: str = ""
    sale_price_text: str = ""
    original_price_text: str = ""
    availability_text: str = ""
    in_stock: Optional[bool] = None
    matched_selector: str = ""
    html: Optional[str] = None


@dataclass
class ExtractionAttempt:
    """Execution record of one tier for one extraction call."""
    tier: Tier
    started_at: datetime
    duration_ms: int = 0
    success: bool = False
    error_category: Optional[ErrorCategory] = None
    error: Optional[str] = None
    raw_price_text: Optional[str] = None
    parsed_price: Optional[float] = None
    circuit_open: bool = False
    attempts: int = 0


@dataclass
class PriceExtractionResult:
    """
    Final output of the extraction pipeline.

    success=True always carries a validated price; success=False never
    carries one.
    """
    url: str
    success: bool
    price: Optional[float] = None
    original_price: Optional[float] = None
    in_stock: bool = True
    store_name: str = ""
    source_tier: Optional[Tier] = None
    error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None
    attempts: List[ExtractionAttempt] = field(default_factory=list)
    checked_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.success and self.price is None:
            raise ValueError("Successful result requires a price")
        if not self.success and self.price is not None:
            raise ValueError("Failed result must not carry a price")

    @classmethod
    def failure(
        cls,
        url: str,
        error: str,
        category: ErrorCategory,
        store_name: str = "",
        attempts: Optional[List[ExtractionAttempt]] = None,
    ) -> "PriceExtractionResult":
        return cls(
            url=url,
            success=False,
            error=error,
            error_category=category,
            store_name=store_name,
            attempts=list(attempts or []),
        )

    def to_record(self) -> Dict[str, Any]:
        """Flatten to a dict suitable for CSV/JSON sinks."""
        return {
            "url": self.url,
            "success": self.success,
            "price": self.price,
            "original_price": self.original_price,
            "in_stock": self.in_stock,
            "store_name": self.store_name,
            "source_tier": self.source_tier.value if self.source_tier else None,
            "error": self.error,
            "error_category": self.error_category.value if self.error_category else None,
            "tiers_attempted": ",".join(a.tier.value for a in self.attempts),
            "checked_at": self.checked_at.isoformat(),
        }
