"""Tests for the admin workflow."""

import asyncio

from storefront.services import admin
from storefront.services.admin import AdminDashboard, ProductForm


def _run(coro):
    return asyncio.run(coro)


class TestProductForm:
    def test_csv_fields_are_split(self):
        product = ProductForm(name=" Tee ", price="19.90", sizes="S, M,, L ", colors="red", stock="4").to_product()
        assert product.name == "Tee"
        assert product.price == 19.90
        assert product.sizes == ["S", "M", "L"]
        assert product.colors == ["red"]
        assert product.stock == 4

    def test_updates_skip_blank_optionals(self):
        updates = ProductForm(name="Tee", price="5", stock="1").to_updates()
        assert updates == {"name": "Tee", "price": 5.0, "stock": 1}

    def test_updates_keep_filled_optionals(self):
        updates = ProductForm(name="Tee", price="5", stock="1", category="shirts", sizes="M").to_updates()
        assert updates["category"] == "shirts"
        assert updates["sizes"] == ["M"]


class TestProductWrites:
    def test_create(self, backend):
        _, error = _run(admin.create_product(ProductForm(name="Tee", price="10", stock="3", sizes="S,M")))
        assert error is None
        row = backend.rows("products")[0]
        assert row["sizes"] == ["S", "M"]
        assert row["stock"] == 3

    def test_create_with_bad_price_never_hits_backend(self, backend):
        _, error = _run(admin.create_product(ProductForm(name="Tee", price="abc")))
        assert error is not None
        assert backend.calls == []

    def test_create_with_negative_stock_is_rejected(self, backend):
        _, error = _run(admin.create_product(ProductForm(name="Tee", price="1", stock="-1")))
        assert error is not None
        assert backend.calls == []

    def test_update_and_delete(self, product_rows, backend):
        _run(admin.update_product("p1", ProductForm(name="Tee v2", price="21", stock="9")))
        row = next(r for r in backend.rows("products") if r["id"] == "p1")
        assert row["name"] == "Tee v2"
        assert row["sizes"] == ["S", "M"]

        _run(admin.delete_product("p1"))
        assert all(r["id"] != "p1" for r in backend.rows("products"))


class TestOrderStatus:
    def test_valid_status(self, backend):
        backend.tables["orders"] = [{"id": "o1", "status": "pending"}]
        _, error = _run(admin.update_order_status("o1", "Delivered"))
        assert error is None
        assert backend.rows("orders")[0]["status"] == "delivered"

    def test_unknown_status_is_rejected(self, backend):
        backend.tables["orders"] = [{"id": "o1", "status": "pending"}]
        _, error = _run(admin.update_order_status("o1", "lost"))
        assert isinstance(error, ValueError)
        assert backend.rows("orders")[0]["status"] == "pending"
        assert backend.calls == []


class TestDashboard:
    def test_load(self, product_rows, backend):
        backend.tables["orders"] = [
            {"id": "o1", "status": "delivered", "total_amount": 10, "created_at": "1"},
            {"id": "o2", "status": "pending", "total_amount": 99, "created_at": "2"},
        ]
        dashboard, error = _run(admin.load_dashboard())
        assert error is None
        assert isinstance(dashboard, AdminDashboard)
        assert dashboard.stats["total_revenue"] == 10
        assert dashboard.stats["total_products"] == 3
        assert [o["id"] for o in dashboard.orders] == ["o2", "o1"]
        assert len(dashboard.products) == 3

    def test_stats_failure_fails_dashboard(self, backend):
        backend.fail("products", "select")
        dashboard, error = _run(admin.load_dashboard())
        assert dashboard is None
        assert error is not None


class TestIsAdmin:
    def test_no_user(self, backend):
        assert _run(admin.is_admin(None)) is False

    def test_flag(self, backend):
        backend.tables["user_profiles"] = [{"id": "a", "is_admin": True}]
        assert _run(admin.is_admin({"id": "a"})) is True
        assert _run(admin.is_admin({"id": "b"})) is False

    def test_lookup_error_means_not_admin(self, backend):
        backend.fail("user_profiles", "select")
        assert _run(admin.is_admin({"id": "a"})) is False
