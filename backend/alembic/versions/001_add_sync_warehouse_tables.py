"""Add tenant settings, Amazon warehouse tables and sync logs.

Revision ID: 001
Revises:
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _create_tenant_settings() -> None:
    op.create_table(
        "tenant_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "key", name="uq_tenant_settings_org_key"),
    )


def _create_sales_traffic() -> None:
    int_metrics = [
        "units_ordered", "units_ordered_b2b", "total_order_items", "total_order_items_b2b",
        "browser_sessions", "mobile_sessions", "sessions",
        "browser_page_views", "mobile_page_views", "page_views",
    ]
    pct_metrics = [
        "browser_session_percentage", "mobile_session_percentage", "session_percentage",
        "browser_page_views_percentage", "mobile_page_views_percentage", "page_views_percentage",
        "buy_box_percentage", "unit_session_percentage", "unit_session_percentage_b2b",
    ]
    op.create_table(
        "amazon_sales_traffic",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("parent_asin", sa.String(32), nullable=True),
        sa.Column("child_asin", sa.String(32), nullable=False),
        sa.Column("ordered_product_sales", sa.Numeric(12, 2), nullable=True),
        sa.Column("ordered_product_sales_b2b", sa.Numeric(12, 2), nullable=True),
        *[sa.Column(name, sa.Integer(), nullable=True) for name in int_metrics],
        *[sa.Column(name, sa.Float(), nullable=True) for name in pct_metrics],
        sa.Column("synced_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "amazon_sales_traffic_org_date_asin_idx", "amazon_sales_traffic",
        ["org_id", "date", "child_asin"], unique=True,
    )


def _create_financial_events() -> None:
    op.create_table(
        "amazon_financial_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.String(255), nullable=False),
        sa.Column("transaction_type", sa.String(128), nullable=True),
        sa.Column("posted_date", sa.DateTime(), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_currency", sa.String(8), nullable=True),
        sa.Column("related_identifiers", sa.Text(), nullable=True),
        sa.Column("items", sa.Text(), nullable=True),
        sa.Column("breakdowns", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "amazon_financial_events_org_transaction_idx", "amazon_financial_events",
        ["org_id", "transaction_id"], unique=True,
    )
    op.create_index("ix_amazon_financial_events_posted_date", "amazon_financial_events", ["posted_date"])


def _create_inventory_snapshots() -> None:
    op.create_table(
        "inventory_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amazon_qty", sa.Integer(), nullable=True),
        sa.Column("warehouse_qty", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "inventory_snapshots_org_sku_date_idx", "inventory_snapshots",
        ["org_id", "sku", "date"], unique=True,
    )


def _create_orders() -> None:
    op.create_table(
        "amazon_orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("amazon_order_id", sa.String(64), nullable=False),
        sa.Column("order_item_id", sa.String(64), nullable=False),
        sa.Column("purchase_date", sa.DateTime(), nullable=True),
        sa.Column("last_update_date", sa.DateTime(), nullable=True),
        sa.Column("order_status", sa.String(64), nullable=True),
        sa.Column("fulfillment_channel", sa.String(16), nullable=True),
        sa.Column("asin", sa.String(32), nullable=True),
        sa.Column("seller_sku", sa.String(255), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("quantity_ordered", sa.Integer(), nullable=True),
        sa.Column("quantity_shipped", sa.Integer(), nullable=True),
        sa.Column("item_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("item_currency", sa.String(8), nullable=True),
        sa.Column("is_prime", sa.Boolean(), nullable=True),
        sa.Column("is_business_order", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "amazon_orders_org_order_item_idx", "amazon_orders",
        ["org_id", "amazon_order_id", "order_item_id"], unique=True,
    )


def _create_sync_logs() -> None:
    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=True, server_default="success"),
        sa.Column("synced_at", sa.DateTime(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_logs_org_source", "sync_logs", ["org_id", "source"])
    op.create_index("ix_sync_logs_synced_at", "sync_logs", ["synced_at"])


TABLES = {
    "tenant_settings": _create_tenant_settings,
    "amazon_sales_traffic": _create_sales_traffic,
    "amazon_financial_events": _create_financial_events,
    "inventory_snapshots": _create_inventory_snapshots,
    "amazon_orders": _create_orders,
    "sync_logs": _create_sync_logs,
}


def upgrade() -> None:
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())
    for name, create in TABLES.items():
        if name in existing:
            continue
        create()


def downgrade() -> None:
    for name in reversed(list(TABLES)):
        op.drop_table(name)
