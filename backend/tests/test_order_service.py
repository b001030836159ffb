# Overview: Pytest coverage for order totals, numbering and stock posting.

from decimal import Decimal

import pytest

from threadcount.services.ledger_service import latest_entry
from threadcount.services.order_service import (
    compute_line,
    compute_order_totals,
    create_order,
    list_orders,
)
from threadcount.services.record_store import SqlRecordStore
from threadcount.validation import (
    InsufficientStockError,
    NotFoundError,
    StoreError,
    ValidationError,
    validate_order_item,
)


def _items(*raw):
    return [validate_order_item(item, i) for i, item in enumerate(raw)]


class TestOrderTotals:
    """Pure arithmetic; no persistence."""

    def test_line_arithmetic(self):
        line = compute_line(_items({"product_id": 1, "quantity": 3, "unit_price": "19.99", "discount": "2.50"})[0])
        assert line["final_unit_price"] == Decimal("17.49")
        assert line["line_total"] == Decimal("52.47")

    def test_two_line_totals(self):
        totals = compute_order_totals(_items(
            {"product_id": 1, "quantity": 2, "unit_price": 79.50, "discount": 5},
            {"product_id": 2, "quantity": 1, "unit_price": 35.00, "discount": 0},
        ))
        assert totals["subtotal"] == Decimal("194.00")
        assert totals["total_discount"] == Decimal("10.00")
        assert totals["grand_total"] == Decimal("184.00")
        assert [line["line_total"] for line in totals["items"]] == [Decimal("149.00"), Decimal("35.00")]

    def test_float_inputs_stay_exact(self):
        """0.1 + 0.2 style float drift never reaches the totals."""
        totals = compute_order_totals(_items(
            {"product_id": 1, "quantity": 3, "unit_price": 0.1},
            {"product_id": 2, "quantity": 3, "unit_price": 0.2},
        ))
        assert totals["subtotal"] == Decimal("0.90")
        assert totals["grand_total"] == totals["subtotal"] - totals["total_discount"]

    def test_sum_of_line_totals_equals_grand_total(self):
        totals = compute_order_totals(_items(
            {"product_id": 1, "quantity": 4, "unit_price": "12.34", "discount": "1.11"},
            {"product_id": 2, "quantity": 7, "unit_price": "0.99", "discount": "0.09"},
            {"product_id": 3, "quantity": 1, "unit_price": "250.00", "discount": "25.00"},
        ))
        assert sum(line["line_total"] for line in totals["items"]) == totals["grand_total"]

    @pytest.mark.parametrize(
        "raw",
        [
            {"product_id": 1, "quantity": 0, "unit_price": "1.00"},
            {"product_id": 1, "quantity": 1.5, "unit_price": "1.00"},
            {"product_id": 1, "quantity": 1, "unit_price": "-1.00"},
            {"product_id": 1, "quantity": 1, "unit_price": "1.00", "discount": "-0.50"},
            {"product_id": 1, "quantity": 1, "unit_price": "10.00", "discount": "12.00"},
            {"product_id": 1, "quantity": 1},
            {"quantity": 1, "unit_price": "1.00"},
        ],
    )
    def test_invalid_items(self, raw):
        with pytest.raises(ValidationError):
            validate_order_item(raw, 0)


class TestCreateOrder:

    def test_single_item_order(self, store_a, make_product):
        """25.99 x 2 -> one order, one item, one sale entry at 25.99."""
        tee = make_product(store_a, price="25.99", stock=50)

        order = create_order(store_a, [{"product_id": tee["id"], "unit_price": 25.99, "quantity": 2, "discount": 0}])

        assert order["subtotal"] == Decimal("51.98")
        assert order["total_discount"] == Decimal("0.00")
        assert order["grand_total"] == Decimal("51.98")
        assert order["status"] == "completed"
        assert order["order_number"] == "ORD-0001"
        assert len(order["items"]) == 1
        assert store_a.count("orders") == 1
        assert store_a.count("order_items") == 1

        sales = store_a.list("transactions", product_id=tee["id"], type="sale")
        assert len(sales) == 1
        assert sales[0]["quantity_change"] == -2
        assert sales[0]["price_per_unit"] == Decimal("25.99")
        assert sales[0]["total_value"] == Decimal("51.98")
        assert sales[0]["notes"] == "Order ORD-0001"
        assert store_a.get("products", tee["id"])["stock"] == 48

    def test_discounted_two_product_order(self, store_a, make_product):
        jeans = make_product(store_a, name="Slim Fit Jeans", price="79.50", stock=5)
        scarf = make_product(store_a, name="Wool Scarf", price="35.00", stock=30)

        order = create_order(store_a, [
            {"product_id": jeans["id"], "quantity": 2, "unit_price": 79.50, "discount": 5},
            {"product_id": scarf["id"], "quantity": 1, "unit_price": 35.00, "discount": 0},
        ], notes="Walk-in customer")

        assert order["subtotal"] == Decimal("194.00")
        assert order["total_discount"] == Decimal("10.00")
        assert order["grand_total"] == Decimal("184.00")
        assert order["notes"] == "Walk-in customer"
        assert [i["product_name"] for i in order["items"]] == ["Slim Fit Jeans", "Wool Scarf"]
        assert order["items"][0]["final_unit_price"] == Decimal("74.50")
        assert store_a.get("products", jeans["id"])["stock"] == 3
        assert store_a.get("products", scarf["id"])["stock"] == 29

        jeans_sale = latest_entry(store_a, jeans["id"])
        assert jeans_sale["price_per_unit"] == Decimal("74.50")
        assert jeans_sale["total_value"] == Decimal("149.00")

    def test_same_product_twice_snapshots_in_sequence(self, store_a, make_product):
        tee = make_product(store_a, price="25.99", stock=10)

        create_order(store_a, [
            {"product_id": tee["id"], "quantity": 2, "unit_price": "25.99"},
            {"product_id": tee["id"], "quantity": 3, "unit_price": "25.99", "discount": "1.00"},
        ])

        sales = store_a.list("transactions", order_by="id", product_id=tee["id"], type="sale")
        assert [(s["stock_before"], s["stock_after"]) for s in sales] == [(10, 8), (8, 5)]
        assert store_a.get("products", tee["id"])["stock"] == 5

    def test_totals_frozen_after_price_change(self, store_a, make_product):
        tee = make_product(store_a, price="25.99", stock=10)
        order = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "25.99"}])

        store_a.update("products", tee["id"], {"price": Decimal("99.00")})

        assert store_a.get("orders", order["id"])["grand_total"] == Decimal("25.99")

    def test_order_numbering_continues_from_count(self, store_a, make_product):
        tee = make_product(store_a, price="5.00", stock=100)
        for _ in range(3):
            create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "5.00"}])

        fourth = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "5.00"}])

        assert fourth["order_number"] == "ORD-0004"

    def test_sequence_seeds_from_existing_orders(self, store_a, make_product):
        """Orders written before the counter existed still yield count + 1."""
        tee = make_product(store_a, price="5.00", stock=100)
        for n in range(1, 4):
            store_a.insert("orders", {
                "order_number": f"ORD-{n:04d}",
                "subtotal": Decimal("0.00"),
                "total_discount": Decimal("0.00"),
                "grand_total": Decimal("0.00"),
            })

        order = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "5.00"}])

        assert order["order_number"] == "ORD-0004"

    def test_numbering_is_per_account(self, store_a, store_b, make_product):
        tee_a = make_product(store_a, stock=10)
        tee_b = make_product(store_b, stock=10)

        create_order(store_a, [{"product_id": tee_a["id"], "quantity": 1, "unit_price": "1.00"}])
        create_order(store_a, [{"product_id": tee_a["id"], "quantity": 1, "unit_price": "1.00"}])
        first_b = create_order(store_b, [{"product_id": tee_b["id"], "quantity": 1, "unit_price": "1.00"}])

        assert first_b["order_number"] == "ORD-0001"

    def test_empty_order_rejected(self, store_a):
        with pytest.raises(ValidationError):
            create_order(store_a, [])
        assert store_a.count("orders") == 0

    def test_discount_above_price_rejected_before_writes(self, store_a, make_product):
        tee = make_product(store_a, price="10.00", stock=10)

        with pytest.raises(ValidationError, match=r"items\[0\]\.discount"):
            create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "10.00", "discount": "12.00"}])

        assert store_a.count("orders") == 0
        assert store_a.get("products", tee["id"])["stock"] == 10
        order = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "10.00", "discount": "10.00"}])
        assert order["order_number"] == "ORD-0001"
        assert order["grand_total"] == Decimal("0.00")

    def test_unknown_product_rejected(self, store_a, make_product):
        tee = make_product(store_a, stock=10)
        with pytest.raises(NotFoundError):
            create_order(store_a, [
                {"product_id": tee["id"], "quantity": 1, "unit_price": "1.00"},
                {"product_id": 987654, "quantity": 1, "unit_price": "1.00"},
            ])
        assert store_a.count("orders") == 0
        assert store_a.get("products", tee["id"])["stock"] == 10

    def test_insufficient_stock_is_a_warning_by_default(self, store_a, make_product):
        jeans = make_product(store_a, price="79.50", stock=1)

        create_order(store_a, [{"product_id": jeans["id"], "quantity": 3, "unit_price": "79.50"}])

        assert store_a.get("products", jeans["id"])["stock"] == -2

    def test_insufficient_stock_enforced_when_configured(self, app, monkeypatch, store_a, make_product):
        monkeypatch.setitem(app.config, "ENFORCE_STOCK_ON_ORDER", True)
        jeans = make_product(store_a, price="79.50", stock=1)

        with pytest.raises(InsufficientStockError) as excinfo:
            create_order(store_a, [{"product_id": jeans["id"], "quantity": 3, "unit_price": "79.50"}])

        assert excinfo.value.details["items"][0]["on_hand"] == 1
        assert store_a.count("orders") == 0
        assert store_a.get("products", jeans["id"])["stock"] == 1

    def test_item_insert_failure_leaves_no_order(self, store_a, make_product, account_a):
        """A failure after the header insert must not leave an orphaned order."""
        tee = make_product(store_a, stock=10)

        class FailingItemsStore(SqlRecordStore):
            def insert(self, collection, record):
                if collection == "order_items":
                    raise StoreError("order_items rejected", collection=collection)
                return super().insert(collection, record)

        with pytest.raises(StoreError, match="order_items rejected"):
            create_order(FailingItemsStore(account_a.id), [{"product_id": tee["id"], "quantity": 2, "unit_price": "1.00"}])

        assert store_a.count("orders") == 0
        assert store_a.count("transactions", type="sale") == 0
        assert store_a.get("products", tee["id"])["stock"] == 10

    def test_stock_posting_failure_rolls_back_everything(self, store_a, make_product, account_a):
        tee = make_product(store_a, stock=10)
        scarf = make_product(store_a, name="Wool Scarf", stock=10)

        class FailingSecondSaleStore(SqlRecordStore):
            sales = 0

            def insert(self, collection, record):
                if collection == "transactions" and record["type"] == "sale":
                    self.sales += 1
                    if self.sales == 2:
                        raise StoreError("ledger write failed", collection=collection)
                return super().insert(collection, record)

        with pytest.raises(StoreError):
            create_order(FailingSecondSaleStore(account_a.id), [
                {"product_id": tee["id"], "quantity": 1, "unit_price": "1.00"},
                {"product_id": scarf["id"], "quantity": 1, "unit_price": "1.00"},
            ])

        assert store_a.count("orders") == 0
        assert store_a.get("products", tee["id"])["stock"] == 10
        assert store_a.get("products", scarf["id"])["stock"] == 10

        # the failed attempt does not consume an order number
        order = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "1.00"}])
        assert order["order_number"] == "ORD-0001"

    def test_list_orders_newest_first(self, store_a, make_product):
        tee = make_product(store_a, stock=10)
        first = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "1.00"}])
        second = create_order(store_a, [{"product_id": tee["id"], "quantity": 1, "unit_price": "1.00"}])

        assert [o["id"] for o in list_orders(store_a)] == [second["id"], first["id"]]
        assert list_orders(store_a, status="pending") == []
        with pytest.raises(ValidationError):
            list_orders(store_a, status="shipped")
