"""
Seller Sync - Warehouse Models
Dated, multi-tenant tables fed by the report-based ingestion pipeline.
Every warehouse table carries a unique index on its natural key so that a
repeated sync overwrites instead of duplicating.
"""

import enum
import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import (
    String, Text, Float, Integer, Numeric, Boolean, Date, DateTime,
    Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sellersync.database import Base


def _utcnow() -> datetime:
    """Naive UTC now - matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class SyncStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


# ══════════════════════════════════════════════════════════════════════
#  TENANT SETTINGS - encrypted per-tenant integration settings
# ══════════════════════════════════════════════════════════════════════

class TenantSetting(Base):
    """Encrypted settings blob per (tenant, integration key)."""
    __tablename__ = "tenant_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "key", name="uq_tenant_settings_org_key"),
    )


# ══════════════════════════════════════════════════════════════════════
#  SALES & TRAFFIC - one row per (tenant, day, child ASIN)
# ══════════════════════════════════════════════════════════════════════

class AmazonSalesTraffic(Base):
    """Daily sales & traffic metrics per child ASIN."""
    __tablename__ = "amazon_sales_traffic"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    parent_asin: Mapped[str] = mapped_column(String(32), nullable=True)
    child_asin: Mapped[str] = mapped_column(String(32), nullable=False)
    units_ordered: Mapped[int] = mapped_column(Integer, default=0)
    units_ordered_b2b: Mapped[int] = mapped_column(Integer, default=0)
    ordered_product_sales: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    ordered_product_sales_b2b: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_order_items: Mapped[int] = mapped_column(Integer, default=0)
    total_order_items_b2b: Mapped[int] = mapped_column(Integer, default=0)
    browser_sessions: Mapped[int] = mapped_column(Integer, default=0)
    mobile_sessions: Mapped[int] = mapped_column(Integer, default=0)
    sessions: Mapped[int] = mapped_column(Integer, default=0)
    browser_session_percentage: Mapped[float] = mapped_column(Float, default=0)
    mobile_session_percentage: Mapped[float] = mapped_column(Float, default=0)
    session_percentage: Mapped[float] = mapped_column(Float, default=0)
    browser_page_views: Mapped[int] = mapped_column(Integer, default=0)
    mobile_page_views: Mapped[int] = mapped_column(Integer, default=0)
    page_views: Mapped[int] = mapped_column(Integer, default=0)
    browser_page_views_percentage: Mapped[float] = mapped_column(Float, default=0)
    mobile_page_views_percentage: Mapped[float] = mapped_column(Float, default=0)
    page_views_percentage: Mapped[float] = mapped_column(Float, default=0)
    buy_box_percentage: Mapped[float] = mapped_column(Float, default=0)
    unit_session_percentage: Mapped[float] = mapped_column(Float, default=0)
    unit_session_percentage_b2b: Mapped[float] = mapped_column(Float, default=0)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("amazon_sales_traffic_org_date_asin_idx", "org_id", "date", "child_asin", unique=True),
    )


# ══════════════════════════════════════════════════════════════════════
#  FINANCIAL EVENTS - one row per (tenant, transaction)
# ══════════════════════════════════════════════════════════════════════

class AmazonFinancialEvent(Base):
    """Finances API transaction with its nested collections kept as JSON text."""
    __tablename__ = "amazon_financial_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(128), nullable=True)
    posted_date: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)
    total_currency: Mapped[str] = mapped_column(String(8), nullable=True)
    related_identifiers: Mapped[str] = mapped_column(Text, nullable=True)
    items: Mapped[str] = mapped_column(Text, nullable=True)
    breakdowns: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("amazon_financial_events_org_transaction_idx", "org_id", "transaction_id", unique=True),
        Index("ix_amazon_financial_events_posted_date", "posted_date"),
    )


# ══════════════════════════════════════════════════════════════════════
#  INVENTORY SNAPSHOTS - one row per (tenant, SKU, day)
# ══════════════════════════════════════════════════════════════════════

class InventorySnapshot(Base):
    """Daily fulfilment-network quantity per SKU."""
    __tablename__ = "inventory_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sku: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    amazon_qty: Mapped[int] = mapped_column(Integer, default=0)
    warehouse_qty: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("inventory_snapshots_org_sku_date_idx", "org_id", "sku", "date", unique=True),
    )


# ══════════════════════════════════════════════════════════════════════
#  ORDERS - one row per (tenant, order, order item)
# ══════════════════════════════════════════════════════════════════════

class AmazonOrder(Base):
    """Orders API order line."""
    __tablename__ = "amazon_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    amazon_order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purchase_date: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    last_update_date: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    order_status: Mapped[str] = mapped_column(String(64), nullable=True)
    fulfillment_channel: Mapped[str] = mapped_column(String(16), nullable=True)
    asin: Mapped[str] = mapped_column(String(32), nullable=True)
    seller_sku: Mapped[str] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=True)
    quantity_ordered: Mapped[int] = mapped_column(Integer, default=0)
    quantity_shipped: Mapped[int] = mapped_column(Integer, default=0)
    item_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    item_currency: Mapped[str] = mapped_column(String(8), nullable=True)
    is_prime: Mapped[bool] = mapped_column(Boolean, default=False)
    is_business_order: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("amazon_orders_org_order_item_idx", "org_id", "amazon_order_id", "order_item_id", unique=True),
    )


# ══════════════════════════════════════════════════════════════════════
#  SYNC LOGS - append-only record of scheduler-triggered runs
# ══════════════════════════════════════════════════════════════════════

class SyncLog(Base):
    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=SyncStatus.SUCCESS.value)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    details: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_sync_logs_org_source", "org_id", "source"),
        Index("ix_sync_logs_synced_at", "synced_at"),
    )
