"""
Sync Service - composes the ingestion pipeline per data domain.

  credential → token → report job (create/poll/document) → download/decode
  → normalize → upsert

Domains are independent: the external scheduler calls each one separately,
so a failure in one never blocks the others. Within one call every phase
runs sequentially; the only suspension points are HTTP calls and sleeps.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Any, Awaitable, Callable, Optional
import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sellersync.config import get_settings
from sellersync.errors import CredentialsMissing, SyncError
from sellersync.models import SyncLog, SyncStatus
from sellersync.schemas import Credential
from sellersync.services.normalizers import (
    finance_payload, next_page_token,
    normalize_financial_transactions, normalize_inventory,
    normalize_order_items, normalize_sales_traffic,
)
from sellersync.services.payload_decoder import PayloadDecoder
from sellersync.services.report_service import (
    FBA_INVENTORY_REPORT, SALES_AND_TRAFFIC_REPORT, ReportJobOrchestrator,
)
from sellersync.services.sp_api_client import RateLimitedClient, raise_for_sp_api
from sellersync.services.token_service import TokenCache
from sellersync.services.upsert_writer import UpsertWriter
from sellersync.utils import iso_z, iter_days, utcnow

logger = logging.getLogger(__name__)

FINANCES_PATH = "/finances/2024-06-19/transactions"
ORDERS_PATH = "/orders/v0/orders"
MARKETPLACE_PARTICIPATIONS_PATH = "/sellers/v1/marketplaceParticipations"

SALES_TRAFFIC_OPTIONS = {"dateGranularity": "DAY", "asinGranularity": "CHILD"}

# Pause between daily reports during a backfill (~15 report requests/min quota)
BACKFILL_PAUSE_SECONDS = 5.0


class SyncEngine:
    """
    One engine per process. Owns the token cache, so tokens are shared by
    every domain sync the engine runs and scoped to nothing wider.
    """

    def __init__(
        self,
        credentials,
        warehouse,
        tokens: Optional[TokenCache] = None,
        http: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.credentials = credentials
        self.warehouse = warehouse
        self.tokens = tokens or TokenCache(http=http)
        self.client = RateLimitedClient(self.tokens, http=http, sleep=sleep)
        self.reports = ReportJobOrchestrator(self.client, sleep=sleep)
        self.decoder = PayloadDecoder(http=http)
        self.writer = UpsertWriter(warehouse)
        self._sleep = sleep
        self.default_currency = get_settings().default_currency

    async def _credential(self, tenant: int) -> Credential:
        credential = await self.credentials.get(tenant)
        if credential is None:
            raise CredentialsMissing(tenant)
        return credential

    # ── Sales & traffic ──────────────────────────────────────────────

    async def sync_sales_traffic(self, tenant: int, start_date: date, end_date: date) -> int:
        """
        Pull one day of sales & traffic. The report has no per-row date, so
        rows are stamped with ``start_date``; a multi-day range would silently
        smear totals onto one day and is rejected. Use backfill_sales_traffic
        for ranges.
        """
        if start_date != end_date:
            raise ValueError(
                f"Sales & traffic must be synced one day at a time "
                f"(got {start_date.isoformat()}..{end_date.isoformat()})"
            )

        credential = await self._credential(tenant)
        document = await self.reports.run(
            credential,
            SALES_AND_TRAFFIC_REPORT,
            start_date=start_date,
            end_date=end_date,
            report_options=SALES_TRAFFIC_OPTIONS,
        )
        payload = PayloadDecoder.parse_json(await self.decoder.fetch(document))
        rows = normalize_sales_traffic(payload, start_date)
        return await self.writer.write(tenant, rows)

    async def backfill_sales_traffic(
        self,
        tenant: int,
        start_date: date,
        end_date: date,
        skip_existing: bool = True,
        pause_seconds: float = BACKFILL_PAUSE_SECONDS,
    ) -> list[dict]:
        """
        Sync each day in the range separately. Per-day failures are recorded
        and the loop moves on; days already in the warehouse are skipped.
        """
        existing = await self.warehouse.sales_traffic_dates(tenant) if skip_existing else set()
        results: list[dict] = []

        for day in iter_days(start_date, end_date):
            day_str = day.isoformat()
            if day in existing:
                results.append({"date": day_str, "status": SyncStatus.SKIPPED.value})
                continue

            try:
                upserted = await self.sync_sales_traffic(tenant, day, day)
                results.append({"date": day_str, "status": SyncStatus.SUCCESS.value, "rows": upserted})
                logger.info(f"Amazon backfill {day_str}: {upserted} rows")
            except SyncError as e:
                results.append({"date": day_str, "status": SyncStatus.ERROR.value, "error": str(e)})
                logger.error(f"Amazon backfill {day_str} failed: {e}")
                if isinstance(e, CredentialsMissing):
                    break

            if day < end_date and pause_seconds:
                await self._sleep(pause_seconds)

        return results

    # ── Financial events ─────────────────────────────────────────────

    async def sync_financial_events(
        self,
        tenant: int,
        posted_after: datetime,
        posted_before: datetime,
    ) -> int:
        """Walk every nextToken page first, then upsert, so a failed page writes nothing."""
        credential = await self._credential(tenant)
        transactions = []
        next_token: Optional[str] = None
        pages = 0

        while True:
            params = {"postedAfter": iso_z(posted_after), "postedBefore": iso_z(posted_before)}
            if next_token:
                params["nextToken"] = next_token

            resp = await self.client.request(FINANCES_PATH, credential, params=params)
            raise_for_sp_api(resp, FINANCES_PATH)
            data = resp.json()
            pages += 1

            transactions.extend(normalize_financial_transactions(
                data, offset=len(transactions), default_currency=self.default_currency,
            ))
            next_token = next_page_token(finance_payload(data))
            if not next_token:
                break

        logger.info(f"Fetched {len(transactions)} financial transactions in {pages} pages for tenant {tenant}")
        return await self.writer.write(tenant, transactions)

    # ── Inventory ────────────────────────────────────────────────────

    async def sync_inventory(self, tenant: int, snapshot_date: Optional[date] = None) -> int:
        credential = await self._credential(tenant)
        snapshot_date = snapshot_date or datetime.now(timezone.utc).date()

        document = await self.reports.run(credential, FBA_INVENTORY_REPORT)
        text = await self.decoder.fetch_text(document)
        rows = normalize_inventory(PayloadDecoder.parse_tsv(text))
        return await self.writer.write(tenant, rows, snapshot_date=snapshot_date)

    # ── Orders ───────────────────────────────────────────────────────

    async def sync_orders(self, tenant: int, last_updated_after: datetime) -> int:
        credential = await self._credential(tenant)
        orders = await self._paginate(
            ORDERS_PATH,
            credential,
            {"MarketplaceIds": credential.marketplace_id, "LastUpdatedAfter": iso_z(last_updated_after)},
            list_key="Orders",
        )

        rows = []
        for order in orders:
            order_id = order.get("AmazonOrderId")
            if not order_id:
                continue
            items = await self._paginate(f"{ORDERS_PATH}/{order_id}/orderItems", credential, {}, list_key="OrderItems")
            rows.extend(normalize_order_items(order, items))

        logger.info(f"Fetched {len(orders)} orders ({len(rows)} items) for tenant {tenant}")
        return await self.writer.write(tenant, rows)

    async def _paginate(self, path: str, credential: Credential, params: dict, list_key: str) -> list[dict]:
        """Orders API v0 pagination: payload.<list_key> + payload.NextToken."""
        collected: list[dict] = []
        next_token: Optional[str] = None
        while True:
            page_params = dict(params)
            if next_token:
                page_params["NextToken"] = next_token
            resp = await self.client.request(path, credential, params=page_params)
            raise_for_sp_api(resp, path)
            payload = resp.json().get("payload") or {}
            page = payload.get(list_key) or []
            collected.extend(p for p in page if isinstance(p, dict))
            next_token = next_page_token(payload, key="NextToken")
            if not next_token:
                return collected

    # ── Connection check ─────────────────────────────────────────────

    async def test_connection(self, tenant: int) -> tuple[bool, str]:
        credential = await self.credentials.get(tenant)
        if credential is None:
            return False, "Amazon settings not configured"
        resp = await self.client.request(MARKETPLACE_PARTICIPATIONS_PATH, credential)
        if not resp.is_success:
            return False, f"SP-API error ({resp.status_code}): {resp.text}"
        count = len(resp.json().get("payload") or [])
        return True, f"Connected - {count} marketplace participation(s) found"


# ══════════════════════════════════════════════════════════════════════
#  SYNC LOG + default windows used by the scheduler entry points
# ══════════════════════════════════════════════════════════════════════

async def record_sync(
    db: AsyncSession,
    org_id: int,
    source: str,
    status: SyncStatus,
    details: Optional[str] = None,
) -> SyncLog:
    entry = SyncLog(
        org_id=org_id,
        source=source,
        status=status.value,
        synced_at=utcnow(),
        details=details,
    )
    db.add(entry)
    await db.flush()
    return entry


def default_finance_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Last 30 days, ending 3 minutes ago (the Finances API rejects later postedBefore)."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=30), now - timedelta(minutes=3)


def finance_window(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """
    Default window narrowed by optional days: from 00:00:00 on ``start_date``
    to 23:59:59 on ``end_date``, never later than the default end.
    """
    posted_after, posted_before = default_finance_window(now)
    if start_date is not None:
        posted_after = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    if end_date is not None:
        end_of_day = datetime.combine(end_date, time(23, 59, 59), tzinfo=timezone.utc)
        posted_before = min(posted_before, end_of_day)
    return posted_after, posted_before


@lru_cache
def get_sync_engine() -> SyncEngine:
    """Process-wide engine bound to the configured database."""
    from sellersync.database import async_session, engine
    from sellersync.services.credential_store import SettingsCredentialStore
    from sellersync.services.upsert_writer import SqlWarehouse

    return SyncEngine(
        credentials=SettingsCredentialStore(async_session),
        warehouse=SqlWarehouse(engine),
    )
