#!/usr/bin/env python3
"""
Run an Amazon sync for one tenant outside the scheduler.

Run from backend directory:
  python scripts/backfill_amazon.py --org-id 1 --start 2025-01-01 --end 2025-01-31
  python scripts/backfill_amazon.py --org-id 1 --domain finances --start 2025-01-01 --end 2025-01-31
  python scripts/backfill_amazon.py --org-id 1 --domain inventory
  python scripts/backfill_amazon.py --org-id 1 --domain orders --days 14

Sales & traffic is always pulled one day at a time; days already in
amazon_sales_traffic are skipped unless --no-skip is given.
"""

import asyncio
import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure backend root is on path
backend_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_root))

from sellersync.services.sync_service import (
    BACKFILL_PAUSE_SECONDS, finance_window, get_sync_engine,
)
from sellersync.utils import parse_date

DOMAINS = ("sales-traffic", "finances", "inventory", "orders")


async def backfill_sales_traffic(engine, args) -> int:
    if not args.start or not args.end:
        print("Error: --start and --end are required for sales-traffic")
        return 2
    start = parse_date(args.start, "start")
    end = parse_date(args.end, "end")
    if end < start:
        print("Error: --end must not be before --start")
        return 2

    print(f"Backfilling sales & traffic for org {args.org_id}: {start} to {end}")
    results = await engine.backfill_sales_traffic(
        args.org_id, start, end, skip_existing=not args.no_skip, pause_seconds=args.pause,
    )

    for r in results:
        line = f"  {r['date']}: {r['status']}"
        if "rows" in r:
            line += f" ({r['rows']} rows)"
        if "error" in r:
            line += f" - {r['error']}"
        print(line)

    errors = [r for r in results if r["status"] == "error"]
    print(f"\nDone: {len(results)} days, {len(errors)} errors.")
    return 1 if errors else 0


async def run_domain(engine, args) -> int:
    if args.domain == "finances":
        posted_after, posted_before = finance_window(
            parse_date(args.start, "start") if args.start else None,
            parse_date(args.end, "end") if args.end else None,
        )
        upserted = await engine.sync_financial_events(args.org_id, posted_after, posted_before)
    elif args.domain == "inventory":
        upserted = await engine.sync_inventory(args.org_id)
    else:
        since = datetime.now(timezone.utc) - timedelta(days=args.days)
        upserted = await engine.sync_orders(args.org_id, since)

    print(f"{args.domain}: upserted {upserted} rows for org {args.org_id}")
    return 0


async def main():
    parser = argparse.ArgumentParser(description="Run an Amazon SP-API sync for one tenant")
    parser.add_argument("--org-id", type=int, required=True, help="Tenant (organisation) id")
    parser.add_argument("--domain", choices=DOMAINS, default="sales-traffic", help="Data domain to sync")
    parser.add_argument("--start", help="First day, YYYY-MM-DD")
    parser.add_argument("--end", help="Last day, YYYY-MM-DD (inclusive)")
    parser.add_argument("--days", type=int, default=7, help="Orders lookback in days")
    parser.add_argument("--no-skip", action="store_true", help="Re-sync days that already have rows")
    parser.add_argument("--pause", type=float, default=BACKFILL_PAUSE_SECONDS, help="Seconds between days")
    args = parser.parse_args()

    engine = get_sync_engine()
    try:
        if args.domain == "sales-traffic":
            code = await backfill_sales_traffic(engine, args)
        else:
            code = await run_domain(engine, args)
    except ValueError as e:
        parser.error(str(e))
    sys.exit(code)


if __name__ == "__main__":
    asyncio.run(main())
