"""
HTTP API tests.

Verifies:
- Identification (401) and role checks (403)
- Sale commit status codes and error bodies
- Catalog, inventory, cash flow and printing endpoints
"""

from decimal import Decimal

import httpx
import pytest

from warung_pos.extensions import printer
from warung_pos.models import Product, RecipeEntry, StockMovement, Transaction
from warung_pos.services import inventory_service


# =============================================================================
# IDENTIFICATION AND ROLES
# =============================================================================


class TestAuth:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/inventory"),
            ("POST", "/api/transactions"),
            ("GET", "/api/transactions"),
            ("GET", "/api/cash-flow"),
            ("GET", "/api/stock-movements"),
            ("POST", "/api/print-receipt"),
            ("GET", "/api/printer-status"),
        ],
    )
    def test_requires_identity(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user(self, client):
        resp = client.get("/api/products", headers={"X-User-Id": "99999"})
        assert resp.status_code == 401

    def test_inactive_user(self, client, db_session, cashier, cashier_headers):
        cashier.is_active = False
        db_session.commit()

        resp = client.get("/api/products", headers=cashier_headers)
        assert resp.status_code == 401

    def test_employee_cannot_manage_catalog(self, client, cashier_headers, dimsum_ayam):
        assert client.post("/api/products", json={"name": "X", "price": "1"}, headers=cashier_headers).status_code == 403
        assert client.delete(f"/api/products/{dimsum_ayam.id}", headers=cashier_headers).status_code == 403
        assert client.post("/api/inventory", json={"name": "X", "unit": "kg"}, headers=cashier_headers).status_code == 403


# =============================================================================
# SALE COMMIT
# =============================================================================


class TestCommitRoute:

    def test_commit_dimsum_sale(self, client, db_session, cashier_headers, dimsum_ayam, chicken, cashier):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 2, "unit_price": "50000"}],
            "payment": {"method": "cash", "amount": "150000"},
        }, headers=cashier_headers)

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["transaction"]["total_amount"] == "100000.00"
        assert body["transaction"]["change_amount"] == "50000.00"
        assert body["transaction"]["user_id"] == cashier.id
        assert body["items"][0]["product_name"] == "Dimsum Ayam"
        assert body["print"] is None
        assert inventory_service.get_stock(chicken.id) == Decimal("4.8")

    def test_flat_payment_fields(self, client, cashier_headers, dimsum_ayam):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 1}],
            "payment_method": "transfer",
        }, headers=cashier_headers)

        assert resp.status_code == 201
        assert resp.get_json()["transaction"]["payment_amount"] == "50000.00"

    def test_insufficient_payment(self, client, db_session, cashier_headers, dimsum_ayam):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 2, "unit_price": "50000"}],
            "payment": {"method": "cash", "amount": "40000"},
        }, headers=cashier_headers)

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["details"] == {"total_amount": "100000.00", "payment_amount": "40000.00"}
        assert db_session.query(Transaction).count() == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"items": [], "payment": {"method": "cash", "amount": "1"}},
            {"items": [{"product_id": 1, "quantity": 1.5}], "payment": {"method": "cash", "amount": "1"}},
            {"items": [{"product_id": 1, "quantity": 1}], "payment": {"method": "bitcoin", "amount": "1"}},
            {"items": [{"product_id": 1, "quantity": 1}], "payment": {"method": "cash"}},
            {"items": [{"product_id": 1, "quantity": 1, "unit_price": "abc"}], "payment": {"method": "card"}},
        ],
    )
    def test_malformed_cart(self, client, cashier_headers, payload):
        resp = client.post("/api/transactions", json=payload, headers=cashier_headers)
        assert resp.status_code == 400

    def test_unknown_product(self, client, cashier_headers, db_session):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": 4242, "quantity": 1, "unit_price": "1000"}],
            "payment": {"method": "cash", "amount": "1000"},
        }, headers=cashier_headers)

        assert resp.status_code == 404
        assert resp.get_json()["details"] == {"product_id": 4242}

    @pytest.mark.parametrize(
        "item,payment",
        [
            ({"quantity": 1, "unit_price": "0"}, {"method": "cash", "amount": "0"}),
            ({"quantity": 100001, "unit_price": "1"}, {"method": "card"}),
            ({"quantity": 10**11, "unit_price": "9999999999.99"}, {"method": "card"}),
            ({"quantity": 2, "unit_price": "9999999999.99"}, {"method": "card"}),
        ],
    )
    def test_out_of_range_cart_is_400(self, client, db_session, cashier_headers, dimsum_ayam, item, payment):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, **item}],
            "payment": payment,
        }, headers=cashier_headers)

        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert db_session.query(Transaction).count() == 0

    def test_free_catalog_product_is_400(self, client, db_session, cashier_headers):
        sambal = Product(name="Sambal", price=Decimal("0"))
        db_session.add(sambal)
        db_session.commit()

        resp = client.post("/api/transactions", json={
            "items": [{"product_id": sambal.id, "quantity": 1}],
            "payment": {"method": "cash", "amount": "0"},
        }, headers=cashier_headers)

        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"total_amount": "0.00"}
        assert db_session.query(Transaction).count() == 0

    def test_stock_overflow_is_400(self, client, db_session, cashier_headers, chicken):
        crate = Product(name="Chicken Crate", price=Decimal("1000"))
        db_session.add(crate)
        db_session.flush()
        db_session.add(RecipeEntry(product_id=crate.id, inventory_id=chicken.id, quantity=Decimal("999999999.999")))
        db_session.commit()

        resp = client.post("/api/transactions", json={
            "items": [{"product_id": crate.id, "quantity": 2}],
            "payment": {"method": "card"},
        }, headers=cashier_headers)

        assert resp.status_code == 400
        assert db_session.query(Transaction).count() == 0
        assert inventory_service.get_stock(chicken.id) == Decimal("5")

    def test_print_queued_after_commit(self, app, client, cashier_headers, dimsum_ayam, print_server):
        captured = print_server()

        resp = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 1}],
            "payment": {"method": "cash", "amount": "50000"},
            "print_receipt": True,
        }, headers=cashier_headers)
        printer.shutdown(app)

        assert resp.status_code == 201
        assert resp.get_json()["print"] == "queued"
        assert [r.url.path for r in captured] == ["/print"]

    def test_printer_down_does_not_fail_commit(self, app, client, db_session, cashier_headers, dimsum_ayam, print_server, monkeypatch):
        print_server(fail_with=httpx.ConnectError("Connection refused"))
        monkeypatch.setitem(app.config, "PRINT_ON_COMMIT", True)

        resp = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 1}],
            "payment": {"method": "cash", "amount": "50000"},
        }, headers=cashier_headers)
        printer.shutdown(app)

        assert resp.status_code == 201
        assert resp.get_json()["print"] == "queued"
        assert db_session.query(Transaction).count() == 1

    def test_read_endpoints(self, client, cashier_headers, dimsum_ayam):
        created = client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 3}],
            "payment": {"method": "card"},
        }, headers=cashier_headers).get_json()["transaction"]

        listed = client.get("/api/transactions", headers=cashier_headers).get_json()
        assert [t["id"] for t in listed["items"]] == [created["id"]]

        detail = client.get(f"/api/transactions/{created['id']}", headers=cashier_headers).get_json()
        assert detail["items"][0]["quantity"] == 3

        items = client.get(f"/api/transactions/{created['id']}/items", headers=cashier_headers).get_json()
        assert items["items"][0]["product_name"] == "Dimsum Ayam"

        assert client.get("/api/transactions/99999", headers=cashier_headers).status_code == 404
        assert client.get("/api/transactions?start_date=yesterday", headers=cashier_headers).status_code == 400


# =============================================================================
# CATALOG AND INVENTORY
# =============================================================================


class TestCatalogRoutes:

    def test_init_categories(self, client, admin_headers):
        resp = client.post("/api/init-categories", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 3

        listed = client.get("/api/categories", headers=admin_headers).get_json()
        assert sorted(c["type"] for c in listed["items"]) == ["paket", "satuan", "topping"]

    def test_product_crud_with_recipe(self, client, admin_headers, satuan, chicken):
        resp = client.post("/api/products", json={
            "name": "Siomay",
            "category_id": satuan.id,
            "price": "45000",
            "inventory_items": [{"inventory_id": chicken.id, "quantity": "0.05"}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        product_id = resp.get_json()["id"]

        recipe = client.get(f"/api/products/{product_id}/inventory", headers=admin_headers).get_json()
        assert recipe["items"][0]["quantity"] == "0.050"

        resp = client.put(f"/api/products/{product_id}", json={"price": "47000", "inventory_items": []}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["price"] == "47000.00"
        assert resp.get_json()["inventory_items"] == []

        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{product_id}", headers=admin_headers).status_code == 404

    def test_product_validation(self, client, admin_headers):
        assert client.post("/api/products", json={"name": "No price"}, headers=admin_headers).status_code == 400
        assert client.post("/api/products", json={"name": "Neg", "price": "-1"}, headers=admin_headers).status_code == 400
        assert client.post("/api/products", json={"name": "Cents", "price": "1.005"}, headers=admin_headers).status_code == 400
        assert client.post("/api/products", json={"name": "X", "price": "1", "sku": "A"}, headers=admin_headers).status_code == 400

    def test_delete_sold_product_conflicts(self, client, admin_headers, dimsum_ayam):
        client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 1}],
            "payment": {"method": "cash", "amount": "50000"},
        }, headers=admin_headers)

        assert client.delete(f"/api/products/{dimsum_ayam.id}", headers=admin_headers).status_code == 409

    def test_inventory_create_and_stock_update(self, client, admin_headers, cashier_headers):
        resp = client.post("/api/inventory", json={
            "name": "Shrimp",
            "unit": "kg",
            "stock": "3",
            "min_stock": "1",
        }, headers=admin_headers)
        assert resp.status_code == 201
        item_id = resp.get_json()["id"]
        assert resp.get_json()["stock"] == "3.000"

        resp = client.post(f"/api/inventory/{item_id}/stock", json={"delta": "-2.5", "type": "out", "notes": "Waste"}, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["movement"]["quantity"] == "-2.500"
        assert resp.get_json()["item"]["is_low_stock"] is True

        resp = client.post(f"/api/inventory/{item_id}/stock", json={"new_stock": "10"}, headers=cashier_headers)
        assert resp.get_json()["item"]["stock"] == "10.000"

        low = client.get("/api/inventory/low-stock", headers=cashier_headers).get_json()
        assert low["count"] == 0

        movements = client.get(f"/api/stock-movements?inventory_id={item_id}", headers=cashier_headers).get_json()
        assert [m["type"] for m in movements["items"]] == ["adjustment", "out", "in"]

    def test_stock_update_validation(self, client, cashier_headers, chicken, db_session):
        bad = [
            {},
            {"delta": "1", "new_stock": "2"},
            {"delta": "0"},
            {"delta": "1", "type": "gift"},
        ]
        for payload in bad:
            resp = client.post(f"/api/inventory/{chicken.id}/stock", json=payload, headers=cashier_headers)
            assert resp.status_code == 400, payload

        assert client.post("/api/inventory/9999/stock", json={"delta": "1"}, headers=cashier_headers).status_code == 404
        assert db_session.query(StockMovement).count() == 1

    def test_inventory_update_cannot_write_stock(self, client, admin_headers, chicken):
        resp = client.put(f"/api/inventory/{chicken.id}", json={"stock": "100"}, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.put(f"/api/inventory/{chicken.id}", json={"cost": "47000"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["stock"] == "5.000"

    def test_inventory_delete_conflict(self, client, admin_headers, chicken):
        assert client.delete(f"/api/inventory/{chicken.id}", headers=admin_headers).status_code == 409


# =============================================================================
# CASH FLOW, PRINTING, SYSTEM
# =============================================================================


class TestCashFlowRoutes:

    def test_create_and_filter(self, client, cashier_headers, dimsum_ayam):
        client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 1}],
            "payment": {"method": "cash", "amount": "50000"},
        }, headers=cashier_headers)

        resp = client.post("/api/cash-flow", json={
            "type": "expense",
            "category": "purchase",
            "amount": "20000",
            "description": "Gas refill",
        }, headers=cashier_headers)
        assert resp.status_code == 201

        body = client.get("/api/cash-flow", headers=cashier_headers).get_json()
        assert body["count"] == 2
        assert body["totals"] == {"income": "50000.00", "expense": "20000.00", "net": "30000.00"}

        sales = client.get("/api/cash-flow?category=sales", headers=cashier_headers).get_json()
        assert [e["type"] for e in sales["items"]] == ["income"]

    def test_rejects_non_positive_amount(self, client, cashier_headers):
        resp = client.post("/api/cash-flow", json={"type": "expense", "category": "x", "amount": "0"}, headers=cashier_headers)
        assert resp.status_code == 400


class TestPrintingRoutes:

    @pytest.fixture
    def transaction_id(self, client, cashier_headers, dimsum_ayam):
        return client.post("/api/transactions", json={
            "items": [{"product_id": dimsum_ayam.id, "quantity": 1}],
            "payment": {"method": "cash", "amount": "50000"},
        }, headers=cashier_headers).get_json()["transaction"]["id"]

    def test_print_receipt(self, client, cashier_headers, transaction_id, print_server):
        print_server()

        resp = client.post("/api/print-receipt", json={"transaction_id": transaction_id}, headers=cashier_headers)

        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

    def test_print_failure_is_502(self, client, db_session, cashier_headers, transaction_id, print_server):
        print_server(print_success=False)

        resp = client.post("/api/print-receipt", json={"transaction_id": transaction_id}, headers=cashier_headers)

        assert resp.status_code == 502
        assert resp.get_json() == {"success": False, "message": "Paper out", "details": {"printer": None}}
        assert db_session.query(Transaction).count() == 1

    def test_print_unknown_transaction(self, client, cashier_headers, print_server):
        print_server()
        resp = client.post("/api/print-receipt", json={"transaction_id": 4242}, headers=cashier_headers)
        assert resp.status_code == 404

    def test_printer_status(self, client, cashier_headers, print_server):
        print_server(connected=False)
        body = client.get("/api/printer-status", headers=cashier_headers).get_json()
        assert body["connected"] is False


class TestSystem:

    def test_health_degraded_when_printer_down(self, client, print_server):
        print_server(fail_with=httpx.ConnectError("Connection refused"))

        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    def test_health_ok(self, client, print_server):
        print_server(connected=True)

        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_version(self, client):
        assert client.get("/version").status_code == 200
