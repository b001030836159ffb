# Overview: Tenant-scoped record store; the only place that touches the database session.

"""
Record Store

Generic collection access used by every service:

    list(collection, **filters)     -> [record, ...]
    get(collection, id)             -> record | None
    insert(collection, record)      -> record
    update(collection, id, partial) -> record
    delete(collection, id)          -> None
    count(collection, **filters)    -> int

Records are plain dicts (Model.to_dict()). Every call is scoped to the
account the store was opened for; records owned by another account behave
as if they did not exist.

Write semantics:
- Outside unit_of_work() each write commits immediately.
- Inside unit_of_work() writes are flushed and committed together when the
  outermost block exits; any exception rolls the whole block back.
- "transactions" and "order_items" are append-only: update is refused, and
  delete is only reachable through their parent (product / order).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import update as sql_update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderItem, OrderSequence, Product, StockTransaction
from ..validation import NotFoundError, StoreError

COLLECTIONS = {
    "products": Product,
    "transactions": StockTransaction,
    "orders": Order,
    "order_items": OrderItem,
}

APPEND_ONLY = {"transactions", "order_items"}

# Server-assigned columns; callers cannot set them through insert/update
_PROTECTED = {"id", "account_id"}


class RecordStore(ABC):
    """Tenant-scoped request/response access to products, transactions and orders."""

    account_id: int

    @abstractmethod
    def list(self, collection: str, order_by: str | None = None, **filters: Any) -> list[dict]:
        ...

    @abstractmethod
    def get(self, collection: str, record_id: int) -> dict | None:
        ...

    @abstractmethod
    def insert(self, collection: str, record: dict) -> dict:
        ...

    @abstractmethod
    def update(self, collection: str, record_id: int, partial: dict) -> dict:
        ...

    @abstractmethod
    def delete(self, collection: str, record_id: int) -> None:
        ...

    @abstractmethod
    def count(self, collection: str, **filters: Any) -> int:
        ...

    @abstractmethod
    def unit_of_work(self):
        """Context manager grouping writes into one all-or-nothing step."""

    @abstractmethod
    def next_number(self, name: str) -> int:
        """Atomically allocate the next value of a per-account counter."""


class SqlRecordStore(RecordStore):
    """RecordStore backed by the Flask-SQLAlchemy session."""

    def __init__(self, account_id: int):
        if account_id is None:
            raise ValueError("account_id is required")
        self.account_id = account_id
        self._depth = 0

    def __repr__(self) -> str:
        return f"<SqlRecordStore account_id={self.account_id}>"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    def _scoped(self, collection: str):
        model = self._model(collection)
        query = db.session.query(model)
        if model is OrderItem:
            return query.join(Order, OrderItem.order_id == Order.id).filter(
                Order.account_id == self.account_id
            )
        return query.filter(model.account_id == self.account_id)

    def _load(self, collection: str, record_id: int):
        model = self._model(collection)
        return self._scoped(collection).filter(model.id == record_id).first()

    @staticmethod
    def _columns(model) -> set[str]:
        return {c.key for c in model.__mapper__.columns}

    def _apply_filters(self, query, model, filters: dict):
        columns = self._columns(model)
        for key, value in filters.items():
            if key not in columns:
                raise ValueError(f"Unknown filter field for {model.__tablename__}: {key}")
            query = query.filter(getattr(model, key) == value)
        return query

    @contextmanager
    def _guard(self, collection: str | None) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(str(exc), collection=collection) from exc

    def _finish(self, collection: str | None) -> None:
        if self._depth == 0:
            with self._guard(collection):
                db.session.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, collection: str, order_by: str | None = None, **filters: Any) -> list[dict]:
        model = self._model(collection)
        with self._guard(collection):
            query = self._apply_filters(self._scoped(collection), model, filters)
            if order_by:
                descending = order_by.startswith("-")
                field = order_by.lstrip("-")
                if field not in self._columns(model):
                    raise ValueError(f"Unknown order_by field for {collection}: {field}")
                column = getattr(model, field)
                query = query.order_by(column.desc() if descending else column.asc(),
                                       model.id.desc() if descending else model.id.asc())
            else:
                query = query.order_by(model.id.asc())
            return [row.to_dict() for row in query.all()]

    def get(self, collection: str, record_id: int) -> dict | None:
        with self._guard(collection):
            row = self._load(collection, record_id)
            return row.to_dict() if row is not None else None

    def count(self, collection: str, **filters: Any) -> int:
        model = self._model(collection)
        with self._guard(collection):
            return self._apply_filters(self._scoped(collection), model, filters).count()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, collection: str, record: dict) -> dict:
        model = self._model(collection)
        columns = self._columns(model)
        values = {k: v for k, v in record.items() if k in columns and k not in _PROTECTED}

        with self._guard(collection):
            parent = None
            if model is OrderItem:
                parent = self._load("orders", values.get("order_id"))
                if parent is None:
                    raise NotFoundError(f"Order {values.get('order_id')} not found")
            else:
                values["account_id"] = self.account_id

            row = model(**values)
            db.session.add(row)
            db.session.flush()  # ensures row.id is assigned without committing
            if parent is not None:
                db.session.expire(parent, ["items"])
            result = row.to_dict()

        self._finish(collection)
        return result

    def update(self, collection: str, record_id: int, partial: dict) -> dict:
        if collection in APPEND_ONLY:
            raise StoreError(f"{collection} are append-only", collection=collection)
        model = self._model(collection)
        columns = self._columns(model)

        with self._guard(collection):
            row = self._load(collection, record_id)
            if row is None:
                raise NotFoundError(f"{collection} record {record_id} not found")
            for key, value in partial.items():
                if key in _PROTECTED or key not in columns:
                    continue
                setattr(row, key, value)
            db.session.flush()
            result = row.to_dict()

        self._finish(collection)
        return result

    def delete(self, collection: str, record_id: int) -> None:
        if collection in APPEND_ONLY:
            raise StoreError(
                f"{collection} cannot be deleted independently of their parent",
                collection=collection,
            )

        with self._guard(collection):
            row = self._load(collection, record_id)
            if row is None:
                raise NotFoundError(f"{collection} record {record_id} not found")
            if isinstance(row, Product):
                # Historical order lines keep their name snapshot, not the link
                db.session.execute(
                    sql_update(OrderItem)
                    .where(OrderItem.product_id == row.id)
                    .values(product_id=None)
                    .execution_options(synchronize_session=False)
                )
            db.session.delete(row)  # cascades to transactions / order items
            db.session.flush()

        self._finish(collection)

    @contextmanager
    def unit_of_work(self):
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                db.session.rollback()
            raise
        self._depth -= 1
        self._finish(None)

    def next_number(self, name: str) -> int:
        """
        Allocate the next counter value for (account, name).

        The first allocation seeds the counter from the current number of
        orders so pre-existing data keeps counting from count + 1.
        """
        stmt = (
            sql_update(OrderSequence)
            .where(
                OrderSequence.account_id == self.account_id,
                OrderSequence.name == name,
            )
            .values(next_number=OrderSequence.next_number + 1)
            .execution_options(synchronize_session=False)
        )

        with self._guard("order_sequences"):
            result = db.session.execute(stmt)
            if result.rowcount:
                db.session.flush()
                current = (
                    db.session.query(OrderSequence.next_number)
                    .filter_by(account_id=self.account_id, name=name)
                    .scalar()
                )
                value = current - 1
            else:
                value = self._scoped("orders").count() + 1
                seq = OrderSequence(account_id=self.account_id, name=name, next_number=value + 1)
                db.session.add(seq)
                db.session.flush()

        self._finish("order_sequences")
        return value
