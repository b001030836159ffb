# Overview: Pytest coverage for product lifecycle and catalog queries.

from decimal import Decimal

import pytest

from threadcount.services.ledger_service import apply_stock_change
from threadcount.services.order_service import create_order
from threadcount.services.products_service import (
    create_product,
    delete_product,
    get_product_stock,
    inventory_summary,
    list_categories,
    list_low_stock,
    list_products,
    update_product,
)
from threadcount.validation import ValidationError

VALID = {
    "name": "Classic White Tee",
    "description": "Premium organic cotton t-shirt.",
    "price": "25.99",
    "low_stock_threshold": 10,
}


class TestCreateProduct:

    def test_initial_stock_entry(self, store_a):
        """Exactly one 'initial' entry: change S, before 0, after S."""
        product = create_product(store_a, VALID, initial_stock=50)

        assert product["stock"] == 50
        assert product["price"] == Decimal("25.99")
        entries = store_a.list("transactions", product_id=product["id"])
        assert len(entries) == 1
        initial = entries[0]
        assert initial["type"] == "initial"
        assert initial["quantity_change"] == 50
        assert initial["stock_before"] == 0
        assert initial["stock_after"] == 50
        assert initial["product_name"] == "Classic White Tee"

    def test_zero_initial_stock_still_records_entry(self, store_a):
        product = create_product(store_a, VALID)
        assert product["stock"] == 0
        assert store_a.count("transactions", product_id=product["id"], type="initial") == 1

    def test_default_threshold_from_config(self, app, store_a):
        data = {k: v for k, v in VALID.items() if k != "low_stock_threshold"}
        product = create_product(store_a, data, initial_stock=1)
        assert product["low_stock_threshold"] == app.config["DEFAULT_LOW_STOCK_THRESHOLD"]

    @pytest.mark.parametrize(
        "override",
        [
            {"price": "0"},
            {"price": "-1.00"},
            {"price": "abc"},
            {"low_stock_threshold": -1},
            {"name": "X"},
            {"description": "too short"},
            {"image_url": "ftp://example.com/a.png"},
            {"ai_hint": "x" * 51},
        ],
    )
    def test_invalid_attributes_rejected_before_persistence(self, store_a, override):
        with pytest.raises(ValidationError):
            create_product(store_a, {**VALID, **override}, initial_stock=5)
        assert store_a.count("products") == 0
        assert store_a.count("transactions") == 0

    def test_missing_required_fields(self, store_a):
        with pytest.raises(ValidationError, match="Missing required fields"):
            create_product(store_a, {"name": "Tee"})

    def test_negative_initial_stock(self, store_a):
        with pytest.raises(ValidationError):
            create_product(store_a, VALID, initial_stock=-1)

    def test_stock_not_accepted_as_attribute(self, store_a):
        with pytest.raises(ValidationError):
            create_product(store_a, {**VALID, "stock": 5})


class TestUpdateProduct:

    def test_updates_attributes_and_timestamp(self, store_a, make_product):
        product = make_product(store_a)

        updated = update_product(store_a, product["id"], {"price": "29.99", "category": "Shirts"})

        assert updated["price"] == Decimal("29.99")
        assert updated["category"] == "Shirts"
        assert updated["updated_at"] >= product["updated_at"]
        assert updated["stock"] == product["stock"]

    def test_stock_is_never_edited_directly(self, store_a, make_product):
        product = make_product(store_a, stock=50)

        with pytest.raises(ValidationError):
            update_product(store_a, product["id"], {"stock": 999})

        assert get_product_stock(store_a, product["id"]) == 50

    def test_not_found(self, store_a):
        assert update_product(store_a, 424242, {"name": "Renamed"}) is None

    def test_rename_keeps_ledger_snapshot(self, store_a, make_product):
        product = make_product(store_a, name="Old Name")
        update_product(store_a, product["id"], {"name": "New Name"})

        entry = store_a.list("transactions", product_id=product["id"])[0]
        assert entry["product_name"] == "Old Name"


class TestDeleteProduct:

    def test_delete_removes_product_and_ledger(self, store_a, make_product):
        product = make_product(store_a)
        apply_stock_change(store_a, product["id"], 5, "restock")

        assert delete_product(store_a, product["id"]) is True

        assert store_a.get("products", product["id"]) is None
        assert store_a.count("transactions", product_id=product["id"]) == 0
        assert get_product_stock(store_a, product["id"]) == 0

    def test_delete_keeps_order_history(self, store_a, make_product):
        product = make_product(store_a, price="10.00", stock=5)
        order = create_order(store_a, [{"product_id": product["id"], "quantity": 1, "unit_price": "10.00"}])

        delete_product(store_a, product["id"])

        kept = store_a.get("orders", order["id"])
        assert kept["grand_total"] == Decimal("10.00")
        assert kept["items"][0]["product_name"] == product["name"]
        assert kept["items"][0]["product_id"] is None

    def test_delete_missing(self, store_a):
        assert delete_product(store_a, 31337) is False


class TestCatalogQueries:

    @pytest.fixture
    def catalog(self, store_a, make_product):
        tee = make_product(store_a, name="Classic White Tee", price="25.99", stock=50, threshold=10, category="Tops")
        jeans = make_product(store_a, name="Slim Fit Jeans", price="79.50", stock=5, threshold=5, category="Bottoms")
        scarf = make_product(store_a, name="Wool Scarf", price="35.00", stock=3, threshold=8, category="Accessories")
        return tee, jeans, scarf

    def test_low_stock_sorted_by_stock(self, store_a, catalog):
        tee, jeans, scarf = catalog
        assert [p["id"] for p in list_low_stock(store_a)] == [scarf["id"], jeans["id"]]

    def test_categories(self, store_a, catalog):
        assert list_categories(store_a) == ["Accessories", "Bottoms", "Tops"]

    def test_list_filters(self, store_a, catalog):
        assert [p["name"] for p in list_products(store_a, category="Tops")] == ["Classic White Tee"]
        assert [p["name"] for p in list_products(store_a, search="wool")] == ["Wool Scarf"]
        assert [p["name"] for p in list_products(store_a)] == ["Classic White Tee", "Slim Fit Jeans", "Wool Scarf"]

    def test_inventory_summary(self, store_a, catalog):
        summary = inventory_summary(store_a)
        assert summary["total_products"] == 3
        # 25.99*50 + 79.50*5 + 35.00*3
        assert summary["total_stock_value"] == Decimal("1802.00")
        assert summary["low_stock_count"] == 2
