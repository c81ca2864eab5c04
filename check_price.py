#!/usr/bin/env python3
"""
Single Price Check

Extracts the price of one product with a per-tier report.
Retailer is auto-detected from the URL.

Usage:
    python3 check_price.py --url https://www.footlocker.com/product/~/Z1234.html
    python3 check_price.py --url https://shop.example.com/products/tee --retail-price 45
    python3 check_price.py --url https://www.nike.com/t/air-max-90/CN8490-002 --verbose --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from pricewatch.common import load_engine_settings, setup_logging
from pricewatch.extraction import build_pipeline, detect_price_drop, validate_product_url
from pricewatch.models import PriceExtractionResult

load_dotenv(Path(__file__).parent / ".env")

logger = logging.getLogger(__name__)


def print_report(result: PriceExtractionResult, url_status: str, url_message: str):
    """Print price and per-tier attempt report."""

    print("\n" + "=" * 80)
    print("PRICE CHECK REPORT")
    print("=" * 80)

    print(f"\nURL: {result.url}")
    print(f"Retailer: {result.store_name or 'unknown'}")
    print(f"URL check: [{url_status}] {url_message}")

    print("\n" + "-" * 80)
    print("RESULT")
    print("-" * 80)

    if result.success:
        print(f"\n  Price:          {result.price:.2f}")
        if result.original_price:
            print(f"  Original price: {result.original_price:.2f}")
        print(f"  In stock:       {'yes' if result.in_stock else 'no'}")
        print(f"  Source tier:    {result.source_tier.value}")
    else:
        category = result.error_category.value if result.error_category else "unknown"
        print(f"\n  FAILED [{category}] {result.error}")

    print(f"\nTIERS ({len(result.attempts)} attempted):")
    for attempt in result.attempts:
        if attempt.success:
            status = "OK"
        elif attempt.circuit_open:
            status = "SKIPPED"
        else:
            status = "FAILED"
        detail = f"{attempt.parsed_price:.2f}" if attempt.success else (attempt.error or "")
        print(
            f"  [{status:7}] {attempt.tier.value:16} "
            f"{attempt.duration_ms:>6} ms  x{attempt.attempts}  {detail[:60]}"
        )

    print("\n" + "=" * 80)


def main():
    parser = argparse.ArgumentParser(
        description="Check the current price of a single product"
    )
    parser.add_argument(
        "--url",
        required=True,
        help="Product URL"
    )
    parser.add_argument(
        "--retail-price",
        type=float,
        help="Known retail price (rejects prices above 2x this)"
    )
    parser.add_argument(
        "--previous-price",
        type=float,
        help="Previous price, to report a price drop"
    )
    parser.add_argument(
        "--target-price",
        type=float,
        help="Target price, to report when it is reached"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result record as JSON"
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

    try:
        settings = load_engine_settings()
        pipeline = build_pipeline(settings)
    except (OSError, ValueError) as e:
        print(f"\nConfiguration error: {e}")
        sys.exit(2)

    url_check = validate_product_url(args.url, pipeline.registry)
    if not url_check.can_save:
        print(f"\nError: {url_check.message}")
        sys.exit(1)

    result = pipeline.extract_price(args.url, retail_price_hint=args.retail_price)
    print_report(result, url_check.status, url_check.message)

    if result.success:
        drop = detect_price_drop(args.previous_price or args.retail_price, result.price, args.target_price)
        if drop and drop.target_reached:
            print(f"\nTarget price reached: {result.price:.2f} <= {args.target_price:.2f}")
        if drop and drop.drop_amount > 0:
            print(
                f"\nPrice drop ({drop.severity}): {drop.previous_price:.2f} -> {drop.current_price:.2f} "
                f"({drop.percentage_off}% off)"
            )

    if args.json:
        print(json.dumps(result.to_record(), indent=2, ensure_ascii=False))

    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
