# backend/threadcount/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations go through an account-scoped RecordStore.
- create_product validates before any write and records the initial stock entry
- update_product never touches stock; stock only changes through the ledger
- delete_product removes the product together with its ledger entries
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..validation import ValidationError, to_int, validate_product_payload
from threadcount.time_utils import utcnow
from .ledger_service import append_entry
from .record_store import RecordStore


def create_product(store: RecordStore, data: dict, initial_stock: int = 0) -> dict:
    """
    Create a product and its 'initial' ledger entry.

    Raises:
        ValidationError: invalid attributes or negative initial stock
    """
    patch = validate_product_payload(data, partial=False)
    initial_stock = to_int(initial_stock, "initial_stock")
    if initial_stock < 0:
        raise ValidationError("initial_stock must be >= 0")

    patch.setdefault("low_stock_threshold", current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"])

    now = utcnow()
    with store.unit_of_work():
        product = store.insert(
            "products",
            {**patch, "stock": initial_stock, "created_at": now, "updated_at": now},
        )
        append_entry(
            store,
            product=product,
            tx_type="initial",
            quantity_change=initial_stock,
            stock_before=0,
            stock_after=initial_stock,
            notes="Initial stock added",
        )

    current_app.logger.info(
        "Created product %s (%s) with initial stock %s", product["id"], product["name"], initial_stock
    )
    return product


def update_product(store: RecordStore, product_id: int, patch: dict) -> dict | None:
    """
    Update mutable product attributes.

    Returns:
        Updated product dict, or None if not found
    """
    clean = validate_product_payload(patch, partial=True)
    if store.get("products", product_id) is None:
        return None
    clean["updated_at"] = utcnow()
    return store.update("products", product_id, clean)


def delete_product(store: RecordStore, product_id: int) -> bool:
    """
    Delete a product.

    Its ledger entries go with it; order items keep their name snapshot.

    Returns:
        True if deleted, False if not found
    """
    if store.get("products", product_id) is None:
        return False
    store.delete("products", product_id)
    current_app.logger.info("Deleted product %s", product_id)
    return True


def get_product(store: RecordStore, product_id: int) -> dict | None:
    return store.get("products", product_id)


def get_product_stock(store: RecordStore, product_id: int) -> int:
    product = store.get("products", product_id)
    return product["stock"] if product else 0


def filter_products(products: list[dict], category: str | None = None, search: str | None = None) -> list[dict]:
    needle = (search or "").strip().lower()
    rows = []
    for p in products:
        if category and p.get("category") != category:
            continue
        if needle and needle not in p["name"].lower() and needle not in (p.get("description") or "").lower():
            continue
        rows.append(p)
    return sorted(rows, key=lambda p: (p["name"].lower(), p["id"]))


def list_products(store: RecordStore, category: str | None = None, search: str | None = None) -> list[dict]:
    return filter_products(store.list("products"), category=category, search=search)


def low_stock(products: list[dict]) -> list[dict]:
    """Products at or below their threshold, lowest stock first."""
    rows = [p for p in products if p["stock"] <= p["low_stock_threshold"]]
    return sorted(rows, key=lambda p: (p["stock"], p["id"]))


def list_low_stock(store: RecordStore) -> list[dict]:
    return low_stock(store.list("products"))


def categories(products: list[dict]) -> list[str]:
    return sorted({p["category"] for p in products if p.get("category")})


def list_categories(store: RecordStore) -> list[str]:
    return categories(store.list("products"))


def summarize_inventory(products: list[dict]) -> dict:
    total_value = sum((p["price"] * p["stock"] for p in products), Decimal("0.00"))
    return {
        "total_products": len(products),
        "total_stock_value": total_value,
        "low_stock_count": len(low_stock(products)),
    }


def inventory_summary(store: RecordStore) -> dict:
    return summarize_inventory(store.list("products"))
