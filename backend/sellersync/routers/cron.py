"""
Cron / Scheduled Jobs - Endpoints for an external scheduler.

The scheduler calls one job per domain, independently, e.g.:
  POST /api/cron/amazon/sales-traffic?org_id=1&start=2025-03-01
  POST /api/cron/amazon/finances?org_id=1
  POST /api/cron/amazon/inventory?org_id=1
  POST /api/cron/amazon/orders?org_id=1&days=7
  POST /api/cron/amazon/backfill?org_id=1&start=2025-01-01&end=2025-01-31
Header: X-Cron-Secret: <CRON_SECRET>  (or Authorization: Bearer <CRON_SECRET>)

There is no retry scheduling here: a failed job is simply re-run on the
scheduler's next tick, which is safe because every write is an upsert.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from sellersync.config import get_settings
from sellersync.database import get_db
from sellersync.errors import CredentialsMissing, SyncError
from sellersync.models import SyncStatus
from sellersync.services.sync_service import (
    SyncEngine, finance_window, get_sync_engine, record_sync,
)
from sellersync.utils import parse_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])

AMAZON_JOBS = ("sales-traffic", "finances", "inventory", "orders", "backfill")


async def _require_cron_secret(
    x_cron_secret: str | None = Header(None, alias="X-Cron-Secret"),
    authorization: str | None = Header(None),
) -> None:
    """Verify the request came from the scheduler with a valid secret."""
    secret = get_settings().cron_secret
    if not secret:
        raise HTTPException(500, "CRON_SECRET not configured")
    token = x_cron_secret
    if not token and authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
    if token != secret:
        raise HTTPException(401, "Invalid cron secret")


def _date_param(value: Optional[str], name: str):
    if not value:
        raise HTTPException(400, f"{name} query param required (YYYY-MM-DD)")
    try:
        return parse_date(value, name)
    except ValueError as e:
        raise HTTPException(400, str(e))


async def _run_job(
    job: str,
    org_id: int,
    start: Optional[str],
    end: Optional[str],
    days: int,
    engine: SyncEngine,
) -> dict:
    if job == "sales-traffic":
        day = _date_param(start, "start")
        if end and _date_param(end, "end") != day:
            raise HTTPException(400, "sales-traffic syncs a single day; use the backfill job for ranges")
        upserted = await engine.sync_sales_traffic(org_id, day, day)
        return {"date": day.isoformat(), "upserted": upserted}

    if job == "backfill":
        start_d = _date_param(start, "start")
        end_d = _date_param(end, "end")
        results = await engine.backfill_sales_traffic(org_id, start_d, end_d)
        success = len([r for r in results if r["status"] == SyncStatus.SUCCESS.value])
        errors = len([r for r in results if r["status"] == SyncStatus.ERROR.value])
        return {
            "summary": {"total": len(results), "success": success, "errors": errors},
            "results": results,
        }

    if job == "finances":
        posted_after, posted_before = finance_window(
            _date_param(start, "start") if start else None,
            _date_param(end, "end") if end else None,
        )
        upserted = await engine.sync_financial_events(org_id, posted_after, posted_before)
        return {"posted_after": posted_after.isoformat(), "posted_before": posted_before.isoformat(), "upserted": upserted}

    if job == "inventory":
        snapshot_date = datetime.now(timezone.utc).date()
        upserted = await engine.sync_inventory(org_id, snapshot_date)
        return {"snapshot_date": snapshot_date.isoformat(), "upserted": upserted}

    if job == "orders":
        last_updated_after = datetime.now(timezone.utc) - timedelta(days=days)
        upserted = await engine.sync_orders(org_id, last_updated_after)
        return {"days": days, "last_updated_after": last_updated_after.isoformat(), "upserted": upserted}

    raise HTTPException(400, f"Unknown job: {job}. Use: {', '.join(AMAZON_JOBS)}")


async def _record_failure(db: AsyncSession, org_id: int, source: str, error: Exception) -> None:
    """Commit the error row now; get_db rolls the session back once the HTTPException propagates."""
    await record_sync(db, org_id, source, SyncStatus.ERROR, str(error) or type(error).__name__)
    await db.commit()


@router.post("/amazon/{job}")
async def cron_amazon(
    job: str,
    org_id: int = Query(...),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    days: int = Query(7, ge=1, le=60),
    _: None = Depends(_require_cron_secret),
    engine: SyncEngine = Depends(get_sync_engine),
    db: AsyncSession = Depends(get_db),
):
    """Run one Amazon domain sync for one tenant."""
    if job not in AMAZON_JOBS:
        raise HTTPException(400, f"Unknown job: {job}. Use: {', '.join(AMAZON_JOBS)}")

    source = f"amazon:{job}"
    try:
        result = await _run_job(job, org_id, start, end, days, engine)
    except HTTPException:
        raise
    except CredentialsMissing as e:
        logger.warning(f"Cron {source} skipped for org {org_id}: {e}")
        await _record_failure(db, org_id, source, e)
        raise HTTPException(400, str(e))
    except ValueError as e:
        logger.warning(f"Cron {source} rejected for org {org_id}: {e}")
        await _record_failure(db, org_id, source, e)
        raise HTTPException(400, str(e))
    except SyncError as e:
        logger.exception(f"Cron {source} failed for org {org_id}")
        await _record_failure(db, org_id, source, e)
        raise HTTPException(502, str(e))
    except Exception as e:
        logger.exception(f"Cron {source} failed for org {org_id}")
        await _record_failure(db, org_id, source, e)
        raise HTTPException(500, f"Sync failed for {job}: {e}")

    await record_sync(db, org_id, source, SyncStatus.SUCCESS, str(result.get("upserted", result.get("summary"))))
    logger.info(f"Cron {source} completed for org {org_id}: {result}")
    return {"status": "ok", "job": job, **result}


@router.get("/amazon/test")
async def cron_amazon_test(
    org_id: int = Query(...),
    _: None = Depends(_require_cron_secret),
    engine: SyncEngine = Depends(get_sync_engine),
):
    """Check the tenant's SP-API settings against marketplaceParticipations."""
    ok, message = await engine.test_connection(org_id)
    return {"success": ok, "message": message}
