"""
Batch Price Checker

Runs the extraction pipeline over a list of product URLs.

Features:
- Thread pool fan-out (URLs complete in any order)
- Progress tracking with resume capability
- Failed URL tracking for retries
- Tracking disabled for URLs that keep failing (consecutive failure
  counts survive across runs in the state file)
- Per-retailer success statistics
"""

from __future__ import annotations

import json
import logging
import os
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Dict, List, Optional

from ..models import PriceExtractionResult
from ..resilience import CancellationToken
from ..validation import RetailerStatsTracker
from .pipeline import PriceExtractionPipeline
from .price_drop import MAX_CONSECUTIVE_FAILURES, should_disable_tracking

logger = logging.getLogger(__name__)


class BatchPriceChecker:
    """Batch price extraction with progress tracking and resume capability."""

    def __init__(
        self,
        pipeline: PriceExtractionPipeline,
        output_dir: str = "output",
        max_workers: int = 4,
        delay: float = 0.0,
        tracker: Optional[RetailerStatsTracker] = None,
        max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES,
    ):
        """
        Initialize the batch checker.

        Args:
            pipeline: Pipeline used for every URL (its sink receives successes)
            output_dir: Directory for state and failed-URL files
            max_workers: Concurrent extractions
            delay: Delay in seconds between submitting URLs
            tracker: Stats tracker (a new one is created if omitted)
            max_consecutive_failures: Failures in a row after which a URL
                                      is no longer checked
        """
        self.pipeline = pipeline
        self.output_dir = output_dir
        self.max_workers = max(1, max_workers)
        self.delay = delay
        self.tracker = tracker or RetailerStatsTracker()
        self.max_consecutive_failures = max_consecutive_failures

        self.state_file = os.path.join(output_dir, "price_check_state.json")
        self.failed_file = os.path.join(output_dir, "failed_urls.txt")

        self.processed_urls: set[str] = set()
        self.failed_urls: list[dict] = []
        self.consecutive_failures: Dict[str, int] = {}
        self.disabled_urls: List[str] = []
        self.results: List[PriceExtractionResult] = []
        self.start_time: Optional[datetime] = None

        os.makedirs(output_dir, exist_ok=True)

    def _read_state(self) -> Optional[dict]:
        if not os.path.exists(self.state_file):
            return None
        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load state: %s", e)
            return None

    def load_state(self) -> bool:
        """Load previous run state for resume."""
        state = self._read_state()
        if state is None:
            return False

        self.processed_urls = set(state.get("processed_urls", []))
        self.failed_urls = state.get("failed_urls", [])
        self.consecutive_failures = dict(state.get("consecutive_failures", {}))
        logger.info("Loaded state: URLs processed=%d, failed=%d",
                    len(self.processed_urls), len(self.failed_urls))
        return True

    def load_failure_counts(self) -> None:
        """Load only the consecutive failure counts of earlier runs."""
        state = self._read_state()
        if state is not None:
            self.consecutive_failures = dict(state.get("consecutive_failures", {}))

    def is_tracking_disabled(self, url: str) -> bool:
        return should_disable_tracking(self.consecutive_failures.get(url), self.max_consecutive_failures)

    def save_state(self) -> None:
        """Save current run state."""
        state = {
            "processed_urls": sorted(self.processed_urls),
            "failed_urls": self.failed_urls,
            "consecutive_failures": dict(sorted(self.consecutive_failures.items())),
            "retailer_stats": self.tracker.to_dict(),
            "last_updated": datetime.now().isoformat(),
        }
        with open(self.state_file, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, ensure_ascii=False)

    def save_failed_urls(self) -> None:
        """Save failed URLs to a separate file for retry."""
        with open(self.failed_file, "w", encoding="utf-8") as f:
            for failure in self.failed_urls:
                f.write(f"{failure['url']}\t{failure['error_category']}\t{failure['error']}\n")

    def check_all(
        self,
        urls: List[str],
        limit: int = 0,
        resume: bool = False,
        retail_prices: Optional[Dict[str, float]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[PriceExtractionResult]:
        """
        Check prices for every URL.

        Args:
            urls: Product URLs
            limit: Maximum number of URLs to check (0 = no limit)
            resume: Skip URLs processed by a previous run
                    (URLs whose tracking is disabled are always skipped)
            retail_prices: Optional url -> known retail price hints
            cancel: Stops submitting new URLs and aborts in-flight ones

        Returns:
            Results of this run, in completion order
        """
        self.start_time = datetime.now()
        retail_prices = retail_prices or {}
        cancel = cancel or CancellationToken()

        if resume:
            self.load_state()
        else:
            self.load_failure_counts()

        # Duplicates in the input are checked once
        pending = []
        for url in dict.fromkeys(u for u in urls if u not in self.processed_urls):
            if self.is_tracking_disabled(url):
                self.disabled_urls.append(url)
                continue
            pending.append(url)
        if self.disabled_urls:
            logger.warning(
                "Skipping %d URL(s) after %d consecutive failures",
                len(self.disabled_urls), self.max_consecutive_failures,
            )
        if limit > 0:
            pending = pending[:limit]

        total = len(pending)
        logger.info("Price check: total=%d, remaining=%d, workers=%d", len(urls), total, self.max_workers)

        done_count = 0
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="price-check") as pool:
            futures: Dict[Future, str] = {}
            for i, url in enumerate(pending):
                if cancel.cancelled:
                    logger.warning("Batch cancelled; %d URL(s) not submitted", total - i)
                    break
                future = pool.submit(self.pipeline.extract_price, url, retail_prices.get(url), cancel)
                futures[future] = url
                if self.delay and i < total - 1:
                    time.sleep(self.delay)

                # Drain finished work while submitting so progress is reported steadily
                finished, _ = wait(list(futures), timeout=0, return_when=FIRST_COMPLETED)
                for f in finished:
                    done_count += 1
                    self._collect(futures.pop(f), f.result(), done_count, total)

            for f in list(futures):
                done_count += 1
                self._collect(futures.pop(f), f.result(), done_count, total)

        self.save_state()
        self.save_failed_urls()
        self._print_summary()
        return self.results

    def _collect(self, url: str, result: PriceExtractionResult, n: int, total: int) -> None:
        self.results.append(result)
        self.tracker.record(result)
        self.processed_urls.add(url)

        if result.success:
            self.consecutive_failures.pop(url, None)
            logger.info("[%d/%d] OK %.2f %s (%s)", n, total, result.price, url[:60],
                        result.source_tier.value if result.source_tier else "-")
        else:
            category = result.error_category.value if result.error_category else "unknown"
            logger.error("[%d/%d] FAILED %s: [%s] %s", n, total, url[:60], category, result.error)
            self.failed_urls.append({
                "url": url,
                "error": result.error or "",
                "error_category": category,
                "timestamp": result.checked_at.isoformat(),
            })
            if result.error != "cancelled":
                failures = self.consecutive_failures.get(url, 0) + 1
                self.consecutive_failures[url] = failures
                if self.is_tracking_disabled(url):
                    logger.warning("Disabling price tracking for %s after %d consecutive failures", url, failures)

        # Save state periodically (every 10 URLs)
        if n % 10 == 0:
            self.save_state()
            self.tracker.print_periodic_summary(n)

    def _print_summary(self) -> None:
        """Print run summary."""
        elapsed = (datetime.now() - self.start_time).total_seconds() if self.start_time else 0.0
        self.tracker.print_final_report()
        print(f"  Time elapsed:     {elapsed:.1f} seconds")
        if self.failed_urls:
            print(f"  Failed URLs:      {self.failed_file}")
        if self.disabled_urls:
            print(f"  Tracking disabled: {len(self.disabled_urls)} URL(s) skipped")

    def get_stats(self) -> dict:
        """Return run statistics."""
        return {
            'processed_urls': len(self.processed_urls),
            'succeeded': self.tracker.succeeded,
            'failed_urls': len(self.failed_urls),
            'tracking_disabled': len(self.disabled_urls),
            'success_rate': round(self.tracker.success_rate(), 1),
        }
