from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


CENTS = Decimal("0.01")

# Maximum price: $9,999,999.99
# Keeps values inside Numeric(12, 2) and rejects nonsensical prices
MAX_PRICE = Decimal("9999999.99")

TRANSACTION_TYPES = ("sale", "restock", "initial", "adjustment", "return")

PRODUCT_WRITABLE_FIELDS = {
    "name",
    "description",
    "price",
    "low_stock_threshold",
    "category",
    "image_url",
    "ai_hint",
}


class ValidationError(ValueError):
    """Malformed input caught before any persistence call."""


class NotFoundError(LookupError):
    """Referenced record does not exist in the caller's tenant scope."""


class InsufficientStockError(ValidationError):
    """Raised only when ENFORCE_STOCK_ON_ORDER is enabled."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class StoreError(Exception):
    """The record store rejected a read or write; carries its message unchanged."""
    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection


def to_money(value: Any, field: str) -> Decimal:
    """Coerce a number or numeric string to a cent-quantized Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        # go through repr so 25.99 stays 25.99 instead of its binary expansion
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats and decimal strings."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e3") and decimals (e.g., "12.5")
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def to_bool(value: Any, field: str) -> bool:
    """Strict boolean coercion: real bools, 0/1, and true/false/yes/no/on/off strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise ValidationError(f"{field} must be a boolean")


def require_transaction_type(tx_type: str) -> str:
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(TRANSACTION_TYPES)}"
        )
    return tx_type


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_product_payload(payload: dict, *, partial: bool) -> dict:
    """
    Validates + normalizes product attributes.

    partial=False: create semantics (name, description, price required)
    partial=True: patch semantics (validate only provided keys)

    Stock is never writable here; it only changes through the ledger.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid product payload")

    if "stock" in payload:
        raise ValidationError("stock cannot be edited directly; apply a stock change instead")

    for k in payload.keys():
        if k not in PRODUCT_WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")

    if not partial:
        missing = [f for f in ("name", "description", "price") if f not in payload]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch: dict = {}

    if "name" in payload:
        name = _optional_text(payload["name"]) or ""
        if len(name) < 2:
            raise ValidationError("name must be at least 2 characters")
        if len(name) > 100:
            raise ValidationError("name exceeds max length 100")
        patch["name"] = name

    if "description" in payload:
        description = _optional_text(payload["description"]) or ""
        if len(description) < 10:
            raise ValidationError("description must be at least 10 characters")
        if len(description) > 1000:
            raise ValidationError("description exceeds max length 1000")
        patch["description"] = description

    if "price" in payload:
        price = to_money(payload["price"], "price")
        if price <= 0:
            raise ValidationError("price must be a positive number")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE}")
        patch["price"] = price

    if "low_stock_threshold" in payload:
        threshold = to_int(payload["low_stock_threshold"], "low_stock_threshold")
        if threshold < 0:
            raise ValidationError("low_stock_threshold must be >= 0")
        patch["low_stock_threshold"] = threshold

    if "category" in payload:
        patch["category"] = _optional_text(payload["category"])

    if "image_url" in payload:
        image_url = _optional_text(payload["image_url"])
        if image_url is not None and not image_url.startswith(("http://", "https://")):
            raise ValidationError("image_url must be a valid http(s) URL")
        patch["image_url"] = image_url

    if "ai_hint" in payload:
        ai_hint = _optional_text(payload["ai_hint"])
        if ai_hint is not None and len(ai_hint) > 50:
            raise ValidationError("ai_hint exceeds max length 50")
        patch["ai_hint"] = ai_hint

    return patch


def validate_order_item(raw: dict, index: int) -> dict:
    """Normalize one order line: product_id, quantity >= 1, unit_price >= 0, 0 <= discount <= unit_price."""
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    product_id = raw.get("product_id")
    if product_id is None or str(product_id).strip() == "":
        raise ValidationError(f"items[{index}].product_id is required")

    quantity = to_int(raw.get("quantity"), f"items[{index}].quantity")
    if quantity < 1:
        raise ValidationError(f"items[{index}].quantity must be at least 1")

    if raw.get("unit_price") is None:
        raise ValidationError(f"items[{index}].unit_price is required")
    unit_price = to_money(raw["unit_price"], f"items[{index}].unit_price")
    if unit_price < 0:
        raise ValidationError(f"items[{index}].unit_price cannot be negative")

    discount = raw.get("discount")
    discount = to_money(discount, f"items[{index}].discount") if discount is not None else Decimal("0.00")
    if discount < 0:
        raise ValidationError(f"items[{index}].discount cannot be negative")
    if discount > unit_price:
        raise ValidationError(f"items[{index}].discount cannot exceed unit_price")

    return {
        "product_id": to_int(product_id, f"items[{index}].product_id"),
        "quantity": quantity,
        "unit_price": unit_price,
        "discount": discount,
    }
