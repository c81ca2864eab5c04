"""
Price Drop Detection

Compares a freshly extracted price with the previous known price (or the
retail price when there is no history) and grades the drop.

Severity:
    high    drop >= 30%
    medium  drop >= 15%
    low     any smaller drop
Reaching the target price is reported separately and is always high.

Also holds the tracking-health helpers: how old a price is, and when a
URL has failed often enough that checking it should stop.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

HIGH_DROP_PCT = 30.0
MEDIUM_DROP_PCT = 15.0

STALE_AFTER_DAYS = 14
MAX_CONSECUTIVE_FAILURES = 3


@dataclass(frozen=True)
class PriceDrop:
    previous_price: float
    current_price: float
    drop_amount: float
    drop_percentage: float
    severity: str
    target_reached: bool = False

    @property
    def percentage_off(self) -> int:
        return round(self.drop_percentage)


def drop_severity(drop_percentage: float) -> str:
    if drop_percentage >= HIGH_DROP_PCT:
        return "high"
    if drop_percentage >= MEDIUM_DROP_PCT:
        return "medium"
    return "low"


def detect_price_drop(
    previous_price: Optional[float],
    current_price: Optional[float],
    target_price: Optional[float] = None,
) -> Optional[PriceDrop]:
    """
    Grade a price change.

    Args:
        previous_price: Last successful price (or retail price)
        current_price: Newly extracted price
        target_price: Shopper's target price, if any

    Returns:
        PriceDrop when the price fell or the target was reached, else None
    """
    if current_price is None or current_price <= 0:
        return None

    target_reached = bool(target_price) and current_price <= target_price
    dropped = bool(previous_price) and previous_price > 0 and current_price < previous_price

    if not dropped and not target_reached:
        return None

    if dropped:
        amount = previous_price - current_price
        percentage = amount / previous_price * 100
        severity = drop_severity(percentage)
    else:
        amount = 0.0
        percentage = 0.0
        severity = "low"

    if target_reached:
        severity = "high"

    return PriceDrop(
        previous_price=previous_price if previous_price else current_price,
        current_price=current_price,
        drop_amount=round(amount, 2),
        drop_percentage=percentage,
        severity=severity,
        target_reached=target_reached,
    )


def _as_utc(value: Union[str, datetime]) -> datetime:
    if isinstance(value, str):
        # fromisoformat() only accepts a trailing "Z" from Python 3.11
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def days_since_check(
    last_checked_at: Union[str, datetime, None],
    now: Optional[datetime] = None,
) -> Optional[int]:
    """Whole days since the last price check, or None if never checked."""
    if not last_checked_at:
        return None
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return (now - _as_utc(last_checked_at)).days


def is_price_stale(
    last_checked_at: Union[str, datetime, None],
    now: Optional[datetime] = None,
) -> bool:
    """True when the price was never checked or is more than STALE_AFTER_DAYS old."""
    days = days_since_check(last_checked_at, now)
    return days is None or days > STALE_AFTER_DAYS


def should_disable_tracking(
    consecutive_failures: Optional[int],
    limit: int = MAX_CONSECUTIVE_FAILURES,
) -> bool:
    return (consecutive_failures or 0) >= limit
