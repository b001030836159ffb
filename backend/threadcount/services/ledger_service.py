# Overview: Service-layer operations for the stock ledger; encapsulates stock bookkeeping.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..validation import (
    ValidationError,
    require_transaction_type,
    to_int,
    to_money,
)
from threadcount.time_utils import parse_iso_datetime, utcnow
from .record_store import RecordStore
"""
Stock Ledger Invariants (authoritative)

- Append-only: transactions are inserted, never updated or deleted on their own.
- Every stock change writes the product row and its transaction in one unit of work.
- stock_after = stock_before + quantity_change, with no clamping at zero.
- After every change, product.stock equals stock_after of the newest transaction.
- Snapshots are trusted as written; stock is never recomputed by replaying the ledger.
- Sign convention is the caller's: a sale of N units is quantity_change = -N.
- price_per_unit / total_value exist only for sale decreases.
"""

SORTABLE_COLUMNS = ("timestamp", "product_name", "type", "quantity_change", "stock_after")


def append_entry(
    store: RecordStore,
    *,
    product: dict,
    tx_type: str,
    quantity_change: int,
    stock_before: int,
    stock_after: int,
    notes: str | None = None,
    price_per_unit: Decimal | None = None,
    total_value: Decimal | None = None,
) -> dict:
    """
    Append one ledger entry.

    - No stock arithmetic here; callers pass both snapshots.
    - No updates/deletes of existing entries.
    """
    return store.insert(
        "transactions",
        {
            "product_id": product["id"],
            "product_name": product["name"],
            "type": tx_type,
            "quantity_change": quantity_change,
            "stock_before": stock_before,
            "stock_after": stock_after,
            "price_per_unit": price_per_unit,
            "total_value": total_value,
            "notes": notes,
            "timestamp": utcnow(),
        },
    )


def apply_stock_change(
    store: RecordStore,
    product_id: int,
    quantity_change: int,
    tx_type: str,
    notes: str | None = None,
    unit_price=None,
) -> dict | None:
    """
    Apply a signed quantity change to a product and record it in the ledger.

    Returns the updated product, or None if the product does not exist in
    the store's account.
    """
    require_transaction_type(tx_type)
    quantity_change = to_int(quantity_change, "quantity_change")
    if unit_price is not None:
        unit_price = to_money(unit_price, "unit_price")
        if unit_price < 0:
            raise ValidationError("unit_price cannot be negative")

    with store.unit_of_work():
        product = store.get("products", product_id)
        if product is None:
            return None

        stock_before = product["stock"]
        stock_after = stock_before + quantity_change

        price_per_unit = None
        total_value = None
        if tx_type == "sale" and quantity_change < 0:
            price_per_unit = unit_price if unit_price is not None else product["price"]
            total_value = abs(quantity_change) * price_per_unit

        updated = store.update("products", product_id, {"stock": stock_after, "updated_at": utcnow()})
        append_entry(
            store,
            product=product,
            tx_type=tx_type,
            quantity_change=quantity_change,
            stock_before=stock_before,
            stock_after=stock_after,
            notes=notes,
            price_per_unit=price_per_unit,
            total_value=total_value,
        )

    current_app.logger.info(
        "Stock %s on product %s: %s -> %s (%+d)",
        tx_type, product_id, stock_before, stock_after, quantity_change,
    )
    return updated


def normalize_quantity_change(tx_type: str, amount: int) -> int:
    """
    Sign rule used by the product edit form:
    sale -> negative, restock/return -> positive, adjustment -> as entered.
    """
    require_transaction_type(tx_type)
    amount = to_int(amount, "amount")
    if tx_type == "sale":
        return -abs(amount)
    if tx_type in ("restock", "return"):
        return abs(amount)
    if tx_type == "initial":
        raise ValidationError("initial entries are only written when a product is created")
    return amount


def adjust_stock(
    store: RecordStore,
    product_id: int,
    amount: int,
    tx_type: str,
    notes: str | None = None,
) -> dict | None:
    """Manual stock adjustment; zero amounts are a no-op."""
    quantity_change = normalize_quantity_change(tx_type, amount)
    if quantity_change == 0:
        return store.get("products", product_id)
    return apply_stock_change(
        store,
        product_id,
        quantity_change,
        tx_type,
        notes=notes or f"{tx_type} adjustment",
    )


def latest_entry(store: RecordStore, product_id: int) -> dict | None:
    entries = store.list("transactions", order_by="-id", product_id=product_id)
    return entries[0] if entries else None


def _as_datetime(value, end_of_day: bool = False) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"invalid datetime: {value}")
    # A bare date as the upper bound covers that whole day
    if end_of_day and parsed is not None and len(value.strip()) == 10:
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999999)
    return parsed


def filter_transactions(
    transactions: list[dict],
    *,
    product_id: int | None = None,
    tx_type: str | None = None,
    search: str | None = None,
    start=None,
    end=None,
    sort: str = "timestamp",
    direction: str = "desc",
) -> list[dict]:
    """
    History view over already-loaded entries.

    - search matches product name or notes, case-insensitive
    - start/end are inclusive
    - ties are broken by id so equal timestamps keep insertion order
    """
    if sort not in SORTABLE_COLUMNS:
        raise ValidationError(f"sort must be one of: {', '.join(SORTABLE_COLUMNS)}")
    if direction not in ("asc", "desc"):
        raise ValidationError("direction must be 'asc' or 'desc'")
    if tx_type is not None:
        require_transaction_type(tx_type)

    start_dt = _as_datetime(start)
    end_dt = _as_datetime(end, end_of_day=True)
    needle = (search or "").strip().lower()

    rows = []
    for tx in transactions:
        if product_id is not None and tx["product_id"] != product_id:
            continue
        if tx_type is not None and tx["type"] != tx_type:
            continue
        if needle:
            haystack = f"{tx['product_name']} {tx.get('notes') or ''}".lower()
            if needle not in haystack:
                continue
        if start_dt or end_dt:
            ts = parse_iso_datetime(tx["timestamp"])
            if start_dt and ts < start_dt:
                continue
            if end_dt and ts > end_dt:
                continue
        rows.append(tx)

    def _key(tx: dict):
        value = tx[sort]
        if isinstance(value, str):
            value = value.lower()
        return (value, tx["id"])

    return sorted(rows, key=_key, reverse=(direction == "desc"))


def list_transactions(store: RecordStore, **filters) -> list[dict]:
    """Tenant-scoped ledger history, newest first by default."""
    product_id = filters.get("product_id")
    base = (
        store.list("transactions", product_id=product_id)
        if product_id is not None
        else store.list("transactions")
    )
    return filter_transactions(base, **filters)
