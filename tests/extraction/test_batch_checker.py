"""Tests for pricewatch/extraction/batch_checker.py"""

import json
from unittest.mock import MagicMock

import pytest

from pricewatch.extraction.batch_checker import BatchPriceChecker
from pricewatch.models import ErrorCategory, PriceExtractionResult, Tier
from pricewatch.resilience import CancellationToken


def ok(url, price=50.0, store="Shop"):
    return PriceExtractionResult(
        url=url, success=True, price=price, store_name=store, source_tier=Tier.STANDARD_FETCH,
    )


def failed(url, store="Shop"):
    return PriceExtractionResult.failure(url, "Fetch HTTP 403", ErrorCategory.BOT_DETECTION, store)


@pytest.fixture
def pipeline():
    """Pipeline mock: URLs containing 'bad' fail, everything else succeeds."""
    mock = MagicMock()

    def extract_price(url, retail_price_hint=None, cancel=None):
        return failed(url) if "bad" in url else ok(url)

    mock.extract_price.side_effect = extract_price
    return mock


@pytest.fixture
def checker(pipeline, tmp_path):
    return BatchPriceChecker(pipeline, output_dir=str(tmp_path), max_workers=2)


class TestCheckAll:
    def test_checks_every_url(self, checker, pipeline):
        urls = [f"https://a.com/p/{i}" for i in range(5)]
        results = checker.check_all(urls)
        assert sorted(r.url for r in results) == sorted(urls)
        assert pipeline.extract_price.call_count == 5
        assert checker.get_stats()["succeeded"] == 5

    def test_duplicates_checked_once(self, checker, pipeline):
        checker.check_all(["https://a.com/p/1", "https://a.com/p/1", "https://a.com/p/2"])
        assert pipeline.extract_price.call_count == 2

    def test_limit(self, checker, pipeline):
        checker.check_all([f"https://a.com/p/{i}" for i in range(5)], limit=2)
        assert pipeline.extract_price.call_count == 2

    def test_retail_price_hints_passed(self, checker, pipeline):
        checker.check_all(["https://a.com/p/1"], retail_prices={"https://a.com/p/1": 80.0})
        args = pipeline.extract_price.call_args.args
        assert args[:2] == ("https://a.com/p/1", 80.0)

    def test_failures_recorded(self, checker, tmp_path):
        checker.check_all(["https://a.com/p/1", "https://a.com/bad/2"])

        assert checker.failed_urls[0]["url"] == "https://a.com/bad/2"
        assert checker.failed_urls[0]["error_category"] == "bot_detection"
        lines = (tmp_path / "failed_urls.txt").read_text(encoding="utf-8").splitlines()
        assert lines == ["https://a.com/bad/2\tbot_detection\tFetch HTTP 403"]
        assert checker.tracker.failed == 1

    def test_cancelled_batch_submits_nothing(self, checker, pipeline):
        token = CancellationToken()
        token.cancel()
        assert checker.check_all(["https://a.com/p/1"], cancel=token) == []
        pipeline.extract_price.assert_not_called()


class TestResume:
    def test_state_saved(self, checker, tmp_path):
        checker.check_all(["https://a.com/p/1", "https://a.com/bad/2"])
        state = json.loads((tmp_path / "price_check_state.json").read_text(encoding="utf-8"))
        assert state["processed_urls"] == ["https://a.com/bad/2", "https://a.com/p/1"]
        assert state["retailer_stats"]["Shop"]["success"] == 1

    def test_resume_skips_processed(self, pipeline, tmp_path):
        first = BatchPriceChecker(pipeline, output_dir=str(tmp_path))
        first.check_all(["https://a.com/p/1"])

        second = BatchPriceChecker(pipeline, output_dir=str(tmp_path))
        second.check_all(["https://a.com/p/1", "https://a.com/p/2"], resume=True)
        assert pipeline.extract_price.call_count == 2
        assert second.processed_urls == {"https://a.com/p/1", "https://a.com/p/2"}

    def test_load_state_missing(self, checker):
        assert checker.load_state() is False

    def test_load_state_corrupt(self, checker, tmp_path):
        (tmp_path / "price_check_state.json").write_text("{broken", encoding="utf-8")
        assert checker.load_state() is False


class TestConsecutiveFailures:
    def test_counts_saved_in_state(self, checker, tmp_path):
        checker.check_all(["https://a.com/p/1", "https://a.com/bad/2"])
        state = json.loads((tmp_path / "price_check_state.json").read_text(encoding="utf-8"))
        assert state["consecutive_failures"] == {"https://a.com/bad/2": 1}

    def test_url_skipped_after_three_failed_runs(self, pipeline, tmp_path):
        urls = ["https://a.com/p/1", "https://a.com/bad/2"]
        for _ in range(3):
            BatchPriceChecker(pipeline, output_dir=str(tmp_path)).check_all(urls)
        assert pipeline.extract_price.call_count == 6

        fourth = BatchPriceChecker(pipeline, output_dir=str(tmp_path))
        fourth.check_all(urls)
        assert pipeline.extract_price.call_count == 7
        assert fourth.disabled_urls == ["https://a.com/bad/2"]
        assert fourth.get_stats()["tracking_disabled"] == 1

    def test_success_resets_count(self, pipeline, tmp_path):
        state = {"processed_urls": [], "consecutive_failures": {"https://a.com/p/1": 2}}
        (tmp_path / "price_check_state.json").write_text(json.dumps(state), encoding="utf-8")

        checker = BatchPriceChecker(pipeline, output_dir=str(tmp_path))
        checker.check_all(["https://a.com/p/1"])
        assert checker.consecutive_failures == {}

    def test_cancelled_results_not_counted(self, checker, pipeline):
        pipeline.extract_price.side_effect = lambda url, hint=None, cancel=None: (
            PriceExtractionResult.failure(url, "cancelled", ErrorCategory.TIMEOUT, "Shop")
        )
        checker.check_all(["https://a.com/p/1"])
        assert checker.consecutive_failures == {}

    def test_custom_limit(self, pipeline, tmp_path):
        checker = BatchPriceChecker(pipeline, output_dir=str(tmp_path), max_consecutive_failures=1)
        checker.check_all(["https://a.com/bad/2"])
        assert checker.is_tracking_disabled("https://a.com/bad/2") is True
