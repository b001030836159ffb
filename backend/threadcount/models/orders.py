from __future__ import annotations

from ..extensions import db
from threadcount.time_utils import to_utc_z, utcnow

ORDER_STATUSES = ("pending", "completed", "cancelled")

class Order(db.Model):
    """
    Order header. Totals are frozen at creation and never recomputed from
    current product prices.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("account_id", "order_number", name="uq_orders_account_number"),
        db.Index("ix_orders_account_date", "account_id", "order_date"),
        db.CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ORDER_STATUSES) + ")",
            name="ck_orders_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    # Human-readable order number (e.g., "ORD-0004")
    order_number = db.Column(db.String(32), nullable=False)
    order_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    total_discount = db.Column(db.Numeric(14, 2), nullable=False)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False)

    notes = db.Column(db.Text, nullable=True)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} total={self.grand_total}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "order_number": self.order_number,
            "order_date": to_utc_z(self.order_date),
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "total_discount": self.total_discount,
            "grand_total": self.grand_total,
            "notes": self.notes,
        }

class OrderItem(db.Model):
    """Immutable line item on an order, carrying its own pricing snapshot."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Nullable so deleting a product keeps historical orders intact
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    product_name = db.Column(db.String(100), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    order = db.relationship("Order", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "position": self.position,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount": self.discount,
            "final_unit_price": self.final_unit_price,
            "line_total": self.line_total,
        }

class OrderSequence(db.Model):
    """
    Per-account counter for order numbers.

    Incremented with a single UPDATE so two writers never receive the same
    number inside one database.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("account_id", "name", name="uq_order_sequences_account_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    name = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
