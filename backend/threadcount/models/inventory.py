from __future__ import annotations

from ..extensions import db
from threadcount.time_utils import to_utc_z, utcnow

class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to accounts via account_id.

    STOCK:
    Product.stock is the current level. It is only written by the stock
    ledger, together with a StockTransaction whose stock_after equals it.
    Non-negativity is not enforced here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_account_name", "account_id", "name"),
        db.Index("ix_products_account_category", "account_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)

    # Exact decimal money; never a float
    price = db.Column(db.Numeric(12, 2), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    category = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)
    ai_hint = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    account = db.relationship("Account", backref=db.backref("products", lazy=True))
    transactions = db.relationship(
        "StockTransaction",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} account_id={self.account_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "category": self.category,
            "image_url": self.image_url,
            "ai_hint": self.ai_hint,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class StockTransaction(db.Model):
    """
    Append-only stock ledger entry.

    stock_before / stock_after are snapshots frozen at write time; they are
    never recomputed by replaying the ledger. price_per_unit and total_value
    are only set for sale decreases.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_transactions_account_product", "account_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Denormalized so history stays readable after renames
    product_name = db.Column(db.String(100), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    price_per_unit = db.Column(db.Numeric(12, 2), nullable=True)
    total_value = db.Column(db.Numeric(14, 2), nullable=True)

    notes = db.Column(db.String(255), nullable=True)

    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<StockTransaction id={self.id} product_id={self.product_id} type={self.type!r} "
            f"change={self.quantity_change} {self.stock_before}->{self.stock_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "type": self.type,
            "quantity_change": self.quantity_change,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "price_per_unit": self.price_per_unit,
            "total_value": self.total_value,
            "notes": self.notes,
            "timestamp": to_utc_z(self.timestamp),
        }
