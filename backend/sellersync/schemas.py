"""
Typed records passed between the sync engine stages.
"""

import enum
import hashlib
import datetime as dt
from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict


class Credential(BaseModel):
    """Per-tenant Selling Partner API settings. Read-only to the engine."""
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    refresh_token: str
    marketplace_id: str

    @property
    def identity_key(self) -> str:
        """Stable hash of the fields that identify an LwA grant."""
        raw = f"{self.client_id}\x00{self.refresh_token}".encode()
        return hashlib.sha256(raw).hexdigest()

    def __repr__(self) -> str:
        # Never leak secrets into logs or tracebacks
        return f"Credential(client_id={self.client_id!r}, marketplace_id={self.marketplace_id!r})"

    __str__ = __repr__


class CachedToken(BaseModel):
    token: str
    expires_at: dt.datetime


# ── Report jobs ──────────────────────────────────────────────────────

class ReportStatus(str, enum.Enum):
    CREATED = "CREATED"
    IN_QUEUE = "IN_QUEUE"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    FATAL = "FATAL"
    TIMED_OUT = "TIMED_OUT"


class ReportJob(BaseModel):
    report_id: str
    report_type: str
    marketplace_id: str
    status: ReportStatus = ReportStatus.CREATED
    report_document_id: Optional[str] = None
    polls: int = 0


class ReportDocument(BaseModel):
    report_document_id: str
    url: str
    compression_algorithm: Optional[str] = None


# ── Normalized rows (one variant per domain) ─────────────────────────

class SalesTrafficRow(BaseModel):
    kind: Literal["sales_traffic"] = "sales_traffic"
    date: dt.date
    parent_asin: str = ""
    child_asin: str = ""
    units_ordered: int = 0
    units_ordered_b2b: int = 0
    ordered_product_sales: str = "0"
    ordered_product_sales_b2b: str = "0"
    total_order_items: int = 0
    total_order_items_b2b: int = 0
    browser_sessions: int = 0
    mobile_sessions: int = 0
    sessions: int = 0
    browser_session_percentage: float = 0
    mobile_session_percentage: float = 0
    session_percentage: float = 0
    browser_page_views: int = 0
    mobile_page_views: int = 0
    page_views: int = 0
    browser_page_views_percentage: float = 0
    mobile_page_views_percentage: float = 0
    page_views_percentage: float = 0
    buy_box_percentage: float = 0
    unit_session_percentage: float = 0
    unit_session_percentage_b2b: float = 0


class FinancialTransaction(BaseModel):
    kind: Literal["financial_transaction"] = "financial_transaction"
    transaction_id: str
    transaction_type: str = ""
    posted_date: str = ""
    total_amount: str = "0"
    total_currency: str = ""
    related_identifiers: str = "[]"
    items: str = "[]"
    breakdowns: str = "[]"


class InventoryRow(BaseModel):
    kind: Literal["inventory"] = "inventory"
    seller_sku: str
    total_quantity: int = 0


class OrderItemRow(BaseModel):
    kind: Literal["order_item"] = "order_item"
    amazon_order_id: str
    order_item_id: str
    purchase_date: str = ""
    last_update_date: str = ""
    order_status: str = ""
    fulfillment_channel: str = ""
    asin: str = ""
    seller_sku: str = ""
    title: str = ""
    quantity_ordered: int = 0
    quantity_shipped: int = 0
    item_price: str = "0"
    item_currency: str = ""
    is_prime: bool = False
    is_business_order: bool = False


NormalizedRow = Union[SalesTrafficRow, FinancialTransaction, InventoryRow, OrderItemRow]
