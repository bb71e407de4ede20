#!/usr/bin/env python3
"""
Generate recommendations from the command line.

Run from backend directory:
  python scripts/generate_recommendations.py --brand-id <UUID>
  python scripts/generate_recommendations.py --all

Options:
  --brand-id ID        Generate for one brand
  --all                Run the weekly job for every active brand now (ignores the day check)
  --lookback-days N    Metrics window in days (default 30, single brand only)
  --dry-run            Report what would be generated without saving (single brand only)
"""

import asyncio
import argparse
import json
import sys
import uuid
from pathlib import Path

# Ensure backend root is on path
backend_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_root))

from recengine.database import async_session
from recengine.services.recommendation_generator import generate_recommendations
from recengine.services.scheduler import run_scheduled_recommendation_generation


async def generate_for_brand(brand_id: uuid.UUID, lookback_days: int, dry_run: bool) -> int:
    async with async_session() as db:
        result = await generate_recommendations(db, brand_id, lookback_days=lookback_days, dry_run=dry_run)

    label = "Would generate" if dry_run else "Generated"
    print(f"{label} {result.generated}, skipped {result.skipped} duplicate(s)")
    for rec in result.recommendations:
        print(f"  {rec['type']:<20} {rec['confidence']:<7} {rec['keyword']}")
    for error in result.errors:
        print(f"  ERROR: {error}")
    return 1 if result.errors and result.generated == 0 else 0


async def generate_for_all() -> int:
    result = await run_scheduled_recommendation_generation(force=True)
    print(json.dumps(result.model_dump(), indent=2))
    return 1 if result.error or result.skipped else 0


def main():
    parser = argparse.ArgumentParser(description="Generate keyword and campaign recommendations")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--brand-id", help="Brand UUID")
    target.add_argument("--all", action="store_true", help="All active brands")
    parser.add_argument("--lookback-days", type=int, default=30, help="Metrics window in days")
    parser.add_argument("--dry-run", action="store_true", help="Do not save")
    args = parser.parse_args()

    if args.all:
        sys.exit(asyncio.run(generate_for_all()))

    try:
        brand_id = uuid.UUID(args.brand_id)
    except ValueError:
        print(f"Error: invalid brand id {args.brand_id!r}")
        sys.exit(2)
    sys.exit(asyncio.run(generate_for_brand(brand_id, args.lookback_days, args.dry_run)))


if __name__ == "__main__":
    main()
