"""
Row normalizers - map decoded SP-API documents to NormalizedRow variants.

A missing, null or non-numeric metric becomes 0; one bad field never aborts an otherwise valid document.
A document without the expected top-level array yields no rows.
"""

import json
import logging
import math
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from sellersync.schemas import (
    FinancialTransaction, InventoryRow, OrderItemRow, SalesTrafficRow,
)

logger = logging.getLogger(__name__)


# ── Coercion helpers ─────────────────────────────────────────────────

def to_float(value: Any) -> float:
    """``Number(x) || 0``: anything absent, blank, non-numeric or non-finite is 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_int(value: Any) -> int:
    return int(to_float(value))


def to_amount(money: Any, key: str = "amount") -> str:
    """Amount of a ``{amount, currencyCode}`` object as a decimal string, "0" if absent."""
    if not isinstance(money, dict):
        return "0"
    raw = money.get(key)
    if raw is None or isinstance(raw, bool):
        return "0"
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        return "0"
    if not amount.is_finite():
        return "0"
    return format(amount, "f")


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


# ── Sales & traffic (GET_SALES_AND_TRAFFIC_REPORT) ───────────────────

def normalize_sales_traffic(document: Any, report_date: date) -> list[SalesTrafficRow]:
    """
    salesAndTrafficByAsin aggregates over the whole requested range and has
    no per-entry date, so every row is stamped with ``report_date``. Callers
    must only request single-day ranges for this report.
    """
    entries = _dict(document).get("salesAndTrafficByAsin")
    if not isinstance(entries, list):
        return []

    rows = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        sales = _dict(entry.get("salesByAsin"))
        traffic = _dict(entry.get("trafficByAsin"))

        rows.append(SalesTrafficRow(
            date=report_date,
            parent_asin=_text(entry.get("parentAsin")),
            child_asin=_text(entry.get("childAsin")),
            units_ordered=to_int(sales.get("unitsOrdered")),
            units_ordered_b2b=to_int(sales.get("unitsOrderedB2B")),
            ordered_product_sales=to_amount(sales.get("orderedProductSales")),
            ordered_product_sales_b2b=to_amount(sales.get("orderedProductSalesB2B")),
            total_order_items=to_int(sales.get("totalOrderItems")),
            total_order_items_b2b=to_int(sales.get("totalOrderItemsB2B")),
            browser_sessions=to_int(traffic.get("browserSessions")),
            mobile_sessions=to_int(traffic.get("mobileAppSessions")),
            sessions=to_int(traffic.get("sessions")),
            browser_session_percentage=to_float(traffic.get("browserSessionPercentage")),
            mobile_session_percentage=to_float(traffic.get("mobileAppSessionPercentage")),
            session_percentage=to_float(traffic.get("sessionPercentage")),
            browser_page_views=to_int(traffic.get("browserPageViews")),
            mobile_page_views=to_int(traffic.get("mobileAppPageViews")),
            page_views=to_int(traffic.get("pageViews")),
            browser_page_views_percentage=to_float(traffic.get("browserPageViewsPercentage")),
            mobile_page_views_percentage=to_float(traffic.get("mobileAppPageViewsPercentage")),
            page_views_percentage=to_float(traffic.get("pageViewsPercentage")),
            buy_box_percentage=to_float(traffic.get("buyBoxPercentage")),
            unit_session_percentage=to_float(traffic.get("unitSessionPercentage")),
            unit_session_percentage_b2b=to_float(traffic.get("unitSessionPercentageB2B")),
        ))

    logger.info(f"Normalized {len(rows)} sales & traffic rows for {report_date.isoformat()}")
    return rows


# ── Financial transactions (Finances API 2024-06-19) ─────────────────

def finance_payload(page: Any) -> dict:
    page = _dict(page)
    return _dict(page.get("payload")) or page


def next_page_token(payload: dict, key: str = "nextToken") -> Optional[str]:
    return payload.get(key) or None


def normalize_financial_transactions(
    page: Any,
    offset: int = 0,
    default_currency: str = "GBP",
) -> list[FinancialTransaction]:
    """
    ``offset`` is the number of transactions already collected in this sync;
    it keeps synthesized ids unique across pages.
    """
    txns = finance_payload(page).get("transactions")
    if not isinstance(txns, list):
        return []

    rows = []
    for txn in txns:
        if not isinstance(txn, dict):
            continue
        posted_date = _text(txn.get("postedDate"))
        transaction_type = _text(txn.get("transactionType"))
        transaction_id = txn.get("transactionId") or (
            f"txn-{posted_date}-{transaction_type}-{offset + len(rows)}"
        )
        total = _dict(txn.get("totalAmount"))

        rows.append(FinancialTransaction(
            transaction_id=str(transaction_id),
            transaction_type=transaction_type,
            posted_date=posted_date,
            total_amount=to_amount(total),
            total_currency=total.get("currencyCode") or default_currency,
            related_identifiers=json.dumps(txn.get("relatedIdentifiers") or []),
            items=json.dumps(txn.get("items") or []),
            breakdowns=json.dumps(txn.get("breakdowns") or []),
        ))
    return rows


# ── Inventory (GET_FBA_MYI_UNSUPPRESSED_INVENTORY_DATA, TSV) ─────────

def normalize_inventory(records: list[dict[str, str]]) -> list[InventoryRow]:
    rows = [
        InventoryRow(
            seller_sku=record.get("sku") or "",
            total_quantity=to_int(record.get("afn-total-quantity")),
        )
        for record in records
    ]
    logger.info(f"Normalized {len(rows)} inventory rows")
    return rows


# ── Orders (Orders API v0) ───────────────────────────────────────────

def normalize_order_items(order: dict, items: list[dict]) -> list[OrderItemRow]:
    order_id = _text(order.get("AmazonOrderId"))
    rows = []
    for item in items:
        if not isinstance(item, dict):
            continue
        price = _dict(item.get("ItemPrice"))
        rows.append(OrderItemRow(
            amazon_order_id=order_id,
            order_item_id=_text(item.get("OrderItemId")),
            purchase_date=_text(order.get("PurchaseDate")),
            last_update_date=_text(order.get("LastUpdateDate")),
            order_status=_text(order.get("OrderStatus")),
            fulfillment_channel=_text(order.get("FulfillmentChannel")),
            asin=_text(item.get("ASIN")),
            seller_sku=_text(item.get("SellerSKU")),
            title=_text(item.get("Title")),
            quantity_ordered=to_int(item.get("QuantityOrdered")),
            quantity_shipped=to_int(item.get("QuantityShipped")),
            item_price=to_amount(price, key="Amount"),
            item_currency=_text(price.get("CurrencyCode")),
            is_prime=bool(order.get("IsPrime")),
            is_business_order=bool(order.get("IsBusinessOrder")),
        ))
    return rows
