# Overview: Per-session cache of one account's products, ledger and orders.

"""
InventorySession

Owned by a single caller session (never a module-level singleton):
- refresh() loads products, transactions and orders from the store
- reads are served from the cached lists
- writes go to the store first; the cache is updated only after the
  write succeeded

Failures are logged and re-raised unchanged so callers can report them.
"""

from __future__ import annotations

from functools import wraps

from flask import current_app

from .services import ledger_service, order_service, products_service
from .services.record_store import RecordStore
from .validation import NotFoundError, StoreError, ValidationError


def _reported(action: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except (ValidationError, NotFoundError) as exc:
                current_app.logger.warning("Failed to %s: %s", action, exc)
                raise
            except StoreError:
                current_app.logger.exception("Failed to %s", action)
                raise
        return wrapper
    return decorator


class InventorySession:
    def __init__(self, store: RecordStore):
        self.store = store
        self.products: list[dict] = []
        self.transactions: list[dict] = []
        self.orders: list[dict] = []

    def __repr__(self) -> str:
        return (
            f"<InventorySession account_id={self.store.account_id} "
            f"products={len(self.products)} transactions={len(self.transactions)} orders={len(self.orders)}>"
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @_reported("refresh session cache")
    def refresh(self) -> "InventorySession":
        self.products = self.store.list("products")
        self.transactions = self.store.list("transactions", order_by="-id")
        self.orders = order_service.list_orders(self.store)
        return self

    # ------------------------------------------------------------------
    # Cached reads
    # ------------------------------------------------------------------

    def get_product(self, product_id: int) -> dict | None:
        for p in self.products:
            if p["id"] == product_id:
                return p
        return None

    def get_product_stock(self, product_id: int) -> int:
        product = self.get_product(product_id)
        return product["stock"] if product else 0

    def list_products(self, category: str | None = None, search: str | None = None) -> list[dict]:
        return products_service.filter_products(self.products, category=category, search=search)

    def low_stock(self) -> list[dict]:
        return products_service.low_stock(self.products)

    def categories(self) -> list[str]:
        return products_service.categories(self.products)

    def summary(self) -> dict:
        return products_service.summarize_inventory(self.products)

    def history(self, **filters) -> list[dict]:
        return ledger_service.filter_transactions(self.transactions, **filters)

    def get_order(self, order_id: int) -> dict | None:
        for o in self.orders:
            if o["id"] == order_id:
                return o
        return None

    # ------------------------------------------------------------------
    # Writes (store first, then cache)
    # ------------------------------------------------------------------

    def _put_product(self, product: dict) -> None:
        for i, p in enumerate(self.products):
            if p["id"] == product["id"]:
                self.products[i] = product
                return
        self.products.append(product)

    def _pull_new_entries(self, product_id: int) -> None:
        known = {t["id"] for t in self.transactions}
        fresh = [
            t for t in self.store.list("transactions", order_by="-id", product_id=product_id)
            if t["id"] not in known
        ]
        self.transactions = sorted(fresh + self.transactions, key=lambda t: t["id"], reverse=True)

    @_reported("create product")
    def create_product(self, data: dict, initial_stock: int = 0) -> dict:
        product = products_service.create_product(self.store, data, initial_stock)
        self._put_product(product)
        self._pull_new_entries(product["id"])
        return product

    @_reported("update product")
    def update_product(self, product_id: int, patch: dict) -> dict | None:
        product = products_service.update_product(self.store, product_id, patch)
        if product is not None:
            self._put_product(product)
        return product

    @_reported("delete product")
    def delete_product(self, product_id: int) -> bool:
        deleted = products_service.delete_product(self.store, product_id)
        self.products = [p for p in self.products if p["id"] != product_id]
        self.transactions = [t for t in self.transactions if t["product_id"] != product_id]
        return deleted

    @_reported("apply stock change")
    def apply_stock_change(self, product_id: int, quantity_change: int, tx_type: str,
                           notes: str | None = None, unit_price=None) -> dict | None:
        product = ledger_service.apply_stock_change(
            self.store, product_id, quantity_change, tx_type, notes=notes, unit_price=unit_price
        )
        if product is not None:
            self._put_product(product)
            self._pull_new_entries(product_id)
        return product

    @_reported("adjust stock")
    def adjust_stock(self, product_id: int, amount: int, tx_type: str, notes: str | None = None) -> dict | None:
        product = ledger_service.adjust_stock(self.store, product_id, amount, tx_type, notes=notes)
        if product is not None:
            self._put_product(product)
            self._pull_new_entries(product_id)
        return product

    @_reported("create order")
    def create_order(self, items: list[dict], notes: str | None = None) -> dict:
        order = order_service.create_order(self.store, items, notes=notes)
        self.orders.insert(0, order)
        for product_id in {item["product_id"] for item in order["items"]}:
            product = self.store.get("products", product_id)
            if product is not None:
                self._put_product(product)
            self._pull_new_entries(product_id)
        return order
