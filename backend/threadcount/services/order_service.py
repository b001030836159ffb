"""
Order Service - order totals and order creation

Pricing rules per line:
    final_unit_price = unit_price - discount      (discount is per unit)
    line_total       = final_unit_price * quantity
Order totals:
    subtotal       = sum(unit_price * quantity)
    total_discount = sum(discount * quantity)
    grand_total    = subtotal - total_discount

All amounts are Decimal quantized to cents. Totals are frozen on the order
and never recomputed from later product prices.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..validation import (
    CENTS,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    validate_order_item,
)
from ..models.orders import ORDER_STATUSES
from threadcount.time_utils import utcnow
from .ledger_service import apply_stock_change
from .record_store import RecordStore

ZERO = Decimal("0.00")


def compute_line(item: dict) -> dict:
    """Derive final_unit_price and line_total for one validated item."""
    final_unit_price = (item["unit_price"] - item["discount"]).quantize(CENTS)
    return {
        **item,
        "final_unit_price": final_unit_price,
        "line_total": (final_unit_price * item["quantity"]).quantize(CENTS),
    }


def compute_order_totals(items: list[dict]) -> dict:
    """
    Pure totals computation.

    Items must already be validated (see validation.validate_order_item).
    """
    lines = [compute_line(item) for item in items]
    subtotal = sum((line["unit_price"] * line["quantity"] for line in lines), ZERO)
    total_discount = sum((line["discount"] * line["quantity"] for line in lines), ZERO)
    return {
        "items": lines,
        "subtotal": subtotal.quantize(CENTS),
        "total_discount": total_discount.quantize(CENTS),
        "grand_total": (subtotal - total_discount).quantize(CENTS),
    }


def format_order_number(number: int) -> str:
    prefix = current_app.config["ORDER_NUMBER_PREFIX"]
    pad = current_app.config["ORDER_NUMBER_PAD"]
    return f"{prefix}-{number:0{pad}d}"


def _stock_shortfalls(lines: list[dict], products: dict[int, dict]) -> list[dict]:
    requested: dict[int, int] = {}
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

    shortfalls = []
    for product_id, qty in requested.items():
        on_hand = products[product_id]["stock"]
        if on_hand < qty:
            shortfalls.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })
    return shortfalls


def create_order(store: RecordStore, items: list[dict], notes: str | None = None) -> dict:
    """
    Create a completed order and post one 'sale' ledger entry per line.

    Steps (one unit of work; any failure rolls all of them back):
    1. insert the order header with its frozen totals
    2. insert the order items
    3. decrement stock per item at its final unit price

    Raises:
        ValidationError: empty/invalid items
        NotFoundError: an item references a product outside the account
        InsufficientStockError: only when ENFORCE_STOCK_ON_ORDER is on
    """
    if not items:
        raise ValidationError("Order must have at least one item")

    validated = [validate_order_item(raw, i) for i, raw in enumerate(items)]
    notes = (notes or "").strip() or None

    with store.unit_of_work():
        products: dict[int, dict] = {}
        for line in validated:
            product = store.get("products", line["product_id"])
            if product is None:
                raise NotFoundError(f"Product {line['product_id']} not found")
            products[product["id"]] = product
            line["product_name"] = product["name"]

        shortfalls = _stock_shortfalls(validated, products)
        if shortfalls:
            if current_app.config["ENFORCE_STOCK_ON_ORDER"]:
                raise InsufficientStockError(
                    "Insufficient stock for order", details={"items": shortfalls}
                )
            current_app.logger.warning("Order exceeds available stock: %s", shortfalls)

        totals = compute_order_totals(validated)
        order_number = format_order_number(store.next_number("orders"))

        header = store.insert(
            "orders",
            {
                "order_number": order_number,
                "order_date": utcnow(),
                "status": "completed",
                "subtotal": totals["subtotal"],
                "total_discount": totals["total_discount"],
                "grand_total": totals["grand_total"],
                "notes": notes,
            },
        )

        for position, line in enumerate(totals["items"]):
            store.insert(
                "order_items",
                {
                    "order_id": header["id"],
                    "position": position,
                    "product_id": line["product_id"],
                    "product_name": line["product_name"],
                    "quantity": line["quantity"],
                    "unit_price": line["unit_price"],
                    "discount": line["discount"],
                    "final_unit_price": line["final_unit_price"],
                    "line_total": line["line_total"],
                },
            )

        for line in totals["items"]:
            apply_stock_change(
                store,
                line["product_id"],
                -line["quantity"],
                "sale",
                notes=f"Order {order_number}",
                unit_price=line["final_unit_price"],
            )

        order = store.get("orders", header["id"])

    current_app.logger.info(
        "Created order %s with %d item(s), grand total %s",
        order["order_number"], len(order["items"]), order["grand_total"],
    )
    return order


def get_order(store: RecordStore, order_id: int) -> dict | None:
    return store.get("orders", order_id)


def list_orders(store: RecordStore, status: str | None = None) -> list[dict]:
    """Orders newest first."""
    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        return store.list("orders", order_by="-order_date", status=status)
    return store.list("orders", order_by="-order_date")
