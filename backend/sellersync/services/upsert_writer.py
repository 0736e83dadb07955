"""
Upsert Writer - idempotent merge of normalized rows into the warehouse.

Each row is its own INSERT ... ON CONFLICT (natural key) DO UPDATE and its
own transaction. A failure partway through a batch leaves earlier rows
committed; re-running the sync simply overwrites them.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence
from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncEngine
from sellersync.database import Base
import sellersync.models  # noqa: F401  (registers the warehouse tables)
from sellersync.schemas import NormalizedRow
from sellersync.utils import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

SALES_TRAFFIC_KEY = ("org_id", "date", "child_asin")
FINANCIAL_EVENT_KEY = ("org_id", "transaction_id")
INVENTORY_KEY = ("org_id", "sku", "date")
ORDER_ITEM_KEY = ("org_id", "amazon_order_id", "order_item_id")


def _insert_for(dialect_name: str):
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        from sqlalchemy.dialects.postgresql import insert
    return insert


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        return Decimal("0")


class SqlWarehouse:
    """Warehouse write interface backed by a SQLAlchemy async engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._insert = _insert_for(engine.dialect.name)

    @staticmethod
    def _table(table: str | Table) -> Table:
        if isinstance(table, Table):
            return table
        return Base.metadata.tables[table]

    async def upsert(self, table: str | Table, key_columns: Sequence[str], row: dict) -> bool:
        """Insert ``row`` or overwrite every non-key column of the existing row."""
        tbl = self._table(table)
        stmt = self._insert(tbl).values(**row)
        updates = {col: stmt.excluded[col] for col in row if col not in key_columns}
        stmt = stmt.on_conflict_do_update(index_elements=list(key_columns), set_=updates)

        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount != 0

    async def sales_traffic_dates(self, tenant: int) -> set[date]:
        """Dates that already have sales & traffic rows for the tenant."""
        tbl = self._table("amazon_sales_traffic")
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(tbl.c.date).where(tbl.c.org_id == tenant).distinct()
            )
        return set(result.scalars().all())


class UpsertWriter:
    """Routes each NormalizedRow variant to its table and natural key."""

    def __init__(self, warehouse):
        self.warehouse = warehouse

    async def write(
        self,
        tenant: int,
        rows: Iterable[NormalizedRow],
        snapshot_date: Optional[date] = None,
    ) -> int:
        upserted = 0
        for row in rows:
            table, key, record = self._record(tenant, row, snapshot_date)
            await self.warehouse.upsert(table, key, record)
            upserted += 1
        logger.info(f"Upserted {upserted} rows for tenant {tenant}")
        return upserted

    @staticmethod
    def _record(tenant: int, row: NormalizedRow, snapshot_date: Optional[date]):
        if row.kind == "sales_traffic":
            record = row.model_dump(exclude={"kind"})
            record["ordered_product_sales"] = _decimal(row.ordered_product_sales)
            record["ordered_product_sales_b2b"] = _decimal(row.ordered_product_sales_b2b)
            record.update(org_id=tenant, synced_at=utcnow())
            return "amazon_sales_traffic", SALES_TRAFFIC_KEY, record

        if row.kind == "financial_transaction":
            record = row.model_dump(exclude={"kind"})
            record["posted_date"] = parse_timestamp(row.posted_date)
            record["total_amount"] = _decimal(row.total_amount)
            record["org_id"] = tenant
            return "amazon_financial_events", FINANCIAL_EVENT_KEY, record

        if row.kind == "inventory":
            if snapshot_date is None:
                raise ValueError("snapshot_date is required for inventory rows")
            record = {
                "org_id": tenant,
                "sku": row.seller_sku,
                "date": snapshot_date,
                "amazon_qty": row.total_quantity,
                "updated_at": utcnow(),
            }
            return "inventory_snapshots", INVENTORY_KEY, record

        if row.kind == "order_item":
            record = row.model_dump(exclude={"kind"})
            record["purchase_date"] = parse_timestamp(row.purchase_date)
            record["last_update_date"] = parse_timestamp(row.last_update_date)
            record["item_price"] = _decimal(row.item_price)
            record["org_id"] = tenant
            return "amazon_orders", ORDER_ITEM_KEY, record

        raise ValueError(f"Unknown row kind: {row.kind!r}")
