#!/usr/bin/env python3
"""
Batch Price Check Script

Checks prices for a list of product URLs and appends the results to a
CSV or JSON-lines file. Retailers are auto-detected per URL.

Features:
- Concurrent extraction with a worker pool
- Progress tracking with resume capability
- Failed URL tracking with error categories
- Per-retailer success report

Usage:
    python3 scripts/check_prices.py --urls data/urls.txt
    python3 scripts/check_prices.py --urls data/watchlist.csv --output output/prices.jsonl
    python3 scripts/check_prices.py --urls data/urls.txt --workers 8 --resume
"""

import argparse
import logging
import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv

from pricewatch.common import load_engine_settings, read_url_list, setup_logging
from pricewatch.extraction import BatchPriceChecker, build_pipeline
from pricewatch.storage import CsvResultSink, JsonLinesResultSink

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Batch price check (retailer auto-detected per URL)"
    )
    parser.add_argument(
        "--urls", "-u",
        required=True,
        help="Input file with product URLs (one per line, or CSV with a url column)"
    )
    parser.add_argument(
        "--output", "-o",
        default="output/prices.csv",
        help="Results file; .jsonl writes JSON lines, anything else CSV (default: output/prices.csv)"
    )
    parser.add_argument(
        "--limit", "-l",
        type=int,
        default=0,
        help="Limit number of URLs to check (0 = no limit)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Concurrent extractions (default: batch.max_workers from engine.yaml)"
    )
    parser.add_argument(
        "--delay", "-d",
        type=float,
        help="Delay between submitted URLs in seconds (default: batch.delay_s)"
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Skip URLs processed by a previous run"
    )
    parser.add_argument(
        "--state-dir",
        default="output",
        help="Directory for resume state and failed URL list (default: output)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress info messages, show only warnings and errors"
    )

    args = parser.parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    if not os.path.exists(args.urls):
        print(f"URL file not found: {args.urls}")
        sys.exit(1)

    urls = read_url_list(args.urls)
    if not urls:
        logger.error("No URLs found in input file")
        sys.exit(1)

    settings = load_engine_settings()
    workers = args.workers or settings.max_workers
    delay = settings.batch_delay_s if args.delay is None else args.delay

    if args.output.endswith(".jsonl"):
        sink = JsonLinesResultSink(args.output)
    else:
        sink = CsvResultSink(args.output)

    pipeline = build_pipeline(settings, sink=sink)

    print("=" * 60)
    print("Batch Price Check")
    print("=" * 60)
    print(f"  Input file:       {args.urls}")
    print(f"  Total URLs:       {len(urls)}")
    print(f"  Output:           {args.output}")
    print(f"  Workers:          {workers}")
    print(f"  Submit delay:     {delay}s")
    print(f"  Resume mode:      {args.resume}")
    print(f"  Render service:   {'yes' if pipeline.render_client else 'no'}")
    print(f"  AI fallback:      {'yes' if pipeline.ai_client else 'no'}")

    checker = BatchPriceChecker(
        pipeline=pipeline,
        output_dir=args.state_dir,
        max_workers=workers,
        delay=delay,
    )

    try:
        checker.check_all(urls, limit=args.limit, resume=args.resume)
    except KeyboardInterrupt:
        logger.warning("Interrupted; saving state")
        checker.save_state()
        checker.save_failed_urls()
        sys.exit(130)

    if checker.tracker.has_critical_failures():
        sys.exit(1)


if __name__ == "__main__":
    main()
