"""
Result Sinks

Persist successful extraction results. The pipeline only knows the
ResultSink protocol; the record shape is PriceExtractionResult.to_record()
plus the write timestamp.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Protocol

from ..common.csv_utils import append_csv_row
from ..models import PriceExtractionResult

logger = logging.getLogger(__name__)

RESULT_FIELDNAMES: List[str] = [
    "url",
    "success",
    "price",
    "original_price",
    "in_stock",
    "store_name",
    "source_tier",
    "error",
    "error_category",
    "tiers_attempted",
    "checked_at",
    "recorded_at",
]


class ResultSink(Protocol):
    """Anything that can store a result with a timestamp."""

    def write(self, result: PriceExtractionResult, timestamp: datetime) -> None:
        ...


def _record(result: PriceExtractionResult, timestamp: datetime) -> dict:
    record = result.to_record()
    record["recorded_at"] = timestamp.isoformat()
    return record


class CsvResultSink:
    """Appends one CSV row per result (header written on first use)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def write(self, result: PriceExtractionResult, timestamp: datetime) -> None:
        with self._lock:
            append_csv_row(self.path, _record(result, timestamp), RESULT_FIELDNAMES)
        logger.debug("Wrote %s to %s", result.url, self.path)


class JsonLinesResultSink:
    """Appends one JSON object per line."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def write(self, result: PriceExtractionResult, timestamp: datetime) -> None:
        line = json.dumps(_record(result, timestamp), ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug("Wrote %s to %s", result.url, self.path)
