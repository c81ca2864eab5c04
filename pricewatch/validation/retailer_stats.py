"""
RetailerStatsTracker

Tracks per-retailer extraction success across a batch run and prints
summaries.
"""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from ..models import PriceExtractionResult


@dataclass
class RetailerStats:
    name: str
    success_count: int = 0
    failure_count: int = 0
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    error_categories: Counter = field(default_factory=Counter)
    source_tiers: Counter = field(default_factory=Counter)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Success percentage, 0-100."""
        if self.total == 0:
            return 0.0
        return self.success_count / self.total * 100


class RetailerStatsTracker:
    """
    Aggregate success tracker for a batch price check.

    Safe to call record() from worker threads.

    Usage::

        tracker = RetailerStatsTracker()
        # for each result:
        tracker.record(result)
        # after the batch:
        tracker.print_final_report()
        if tracker.has_critical_failures():
            sys.exit(1)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.retailers: Dict[str, RetailerStats] = {}
        self.total: int = 0
        self.succeeded: int = 0
        self.failed: int = 0
        self.category_counts: Dict[str, int] = defaultdict(int)

    # ── Public API ────────────────────────────────────────────────────────────

    def record(self, result: "PriceExtractionResult") -> None:
        """Record one extraction result."""
        name = result.store_name or "unknown"
        with self._lock:
            stats = self.retailers.get(name)
            if stats is None:
                stats = self.retailers[name] = RetailerStats(name=name)

            self.total += 1
            if result.success:
                self.succeeded += 1
                stats.success_count += 1
                stats.last_success = result.checked_at
                if result.source_tier:
                    stats.source_tiers[result.source_tier.value] += 1
            else:
                self.failed += 1
                stats.failure_count += 1
                stats.last_failure = result.checked_at
                category = result.error_category.value if result.error_category else "unknown"
                stats.error_categories[category] += 1
                self.category_counts[category] += 1

    def get(self, name: str) -> Optional[RetailerStats]:
        with self._lock:
            return self.retailers.get(name)

    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.succeeded / self.total * 100

    def worst_retailers(self, n: int = 5, min_checks: int = 1) -> List[RetailerStats]:
        """Retailers with the lowest success rate (ties broken by volume)."""
        with self._lock:
            candidates = [s for s in self.retailers.values() if s.total >= min_checks]
        return sorted(candidates, key=lambda s: (s.success_rate, -s.total))[:n]

    def print_periodic_summary(self, n_processed: int) -> None:
        """Print a one-line summary (call every N URLs)."""
        if self.total == 0:
            return
        print(
            f"[Progress {n_processed}] Prices: "
            f"✅ {self.succeeded} ok | ❌ {self.failed} failed "
            f"({self.success_rate():.1f}% success)"
        )

    def print_final_report(self) -> None:
        """Print a per-retailer table at the end of the batch."""
        if self.total == 0:
            print("\n[Prices] No URLs processed.")
            return

        gate = "PASS" if not self.has_critical_failures() else "FAIL"

        print("\n" + "=" * 60)
        print(f"Price Check Report  [{gate}]")
        print("=" * 60)
        print(f"  Total URLs:       {self.total}")
        print(f"  Succeeded:        {self.succeeded:>6}  ({self.success_rate():.1f}%)")
        print(f"  Failed:           {self.failed:>6}")

        print("\n  Per-retailer success:")
        for stats in sorted(self.retailers.values(), key=lambda s: s.name):
            print(f"    {stats.name:<30} {stats.success_count:>4}/{stats.total:<4} ({stats.success_rate:.1f}%)")

        if self.category_counts:
            print("\n  Failure categories:")
            for category, count in sorted(self.category_counts.items(), key=lambda x: -x[1]):
                print(f"    {category:<30} {count:>5}")

        print("=" * 60)

    def has_critical_failures(self, threshold_pct: float = 50.0) -> bool:
        """Return True if the failure rate exceeds threshold_pct."""
        if self.total == 0:
            return False
        return (self.failed / self.total * 100) > threshold_pct

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        """Per-retailer stats as plain data (for JSON summaries)."""
        with self._lock:
            return {
                name: {
                    "success": s.success_count,
                    "failure": s.failure_count,
                    "success_rate": round(s.success_rate, 1),
                    "last_success": s.last_success.isoformat() if s.last_success else None,
                    "last_failure": s.last_failure.isoformat() if s.last_failure else None,
                    "error_categories": dict(s.error_categories),
                }
                for name, s in self.retailers.items()
            }
