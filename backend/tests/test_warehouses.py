"""
Warehouse service tests: records, branch and stock views, stock request relay,
replenish requests to the company service.
"""

import pytest

from stockmesh.models import StockRecord, StockRequest


class TestWarehouseRecords:

    def test_create_and_get(self, client, company_headers, sales_headers):
        resp = client.post(
            "/api/warehouses",
            json={"name": "North", "location": "Dock 4"},
            headers=company_headers,
        )
        assert resp.status_code == 201
        created = resp.get_json()
        assert created["product_ids"] == []

        resp = client.get(f"/api/warehouses/{created['id']}", headers=sales_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "North"

    def test_create_missing_location(self, client, company_headers):
        resp = client.post("/api/warehouses", json={"name": "North"}, headers=company_headers)
        assert resp.status_code == 400

    def test_sales_cannot_create(self, client, sales_headers):
        resp = client.post("/api/warehouses", json={"name": "N", "location": "L"}, headers=sales_headers)
        assert resp.status_code == 403

    def test_unknown(self, client, sales_headers):
        assert client.get("/api/warehouses/9999", headers=sales_headers).status_code == 404

    def test_list(self, client, sales_headers, warehouse):
        resp = client.get("/api/warehouses", headers=sales_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1


class TestViews:

    def test_with_branches(self, client, warehouse_manager_headers, warehouse, branch):
        resp = client.get(f"/api/warehouses/{warehouse.id}/with-branches", headers=warehouse_manager_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["warehouse"]["id"] == warehouse.id
        assert [b["id"] for b in body["branches"]] == [branch.id]

    def test_with_no_branches(self, client, warehouse_manager_headers, warehouse):
        resp = client.get(f"/api/warehouses/{warehouse.id}/with-branches", headers=warehouse_manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["branches"] == []

    def test_stock(self, client, db_session, warehouse_manager_headers, warehouse, product):
        db_session.add(StockRecord(warehouse_id=warehouse.id, product_id=product.id, quantity=250))
        db_session.commit()

        resp = client.get(f"/api/warehouses/{warehouse.id}/stock", headers=warehouse_manager_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["warehouse_id"] == warehouse.id
        assert body["stock"][0]["quantity"] == 250

    def test_stock_unknown_warehouse(self, client, warehouse_manager_headers):
        assert client.get("/api/warehouses/9999/stock", headers=warehouse_manager_headers).status_code == 404

    def test_branch_with_warehouse(self, client, sales_headers, warehouse, branch):
        resp = client.get(f"/api/branch-with-warehouse/{branch.id}", headers=sales_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["branch"]["id"] == branch.id
        assert body["warehouse"]["id"] == warehouse.id


class TestStockRequestRelay:

    @pytest.fixture
    def stock_request(self, db_session, warehouse, branch, product):
        req = StockRequest(warehouse_id=warehouse.id, branch_id=branch.id, product_id=product.id, quantity=30)
        db_session.add(req)
        db_session.commit()
        return req

    def test_approve(self, client, warehouse_manager_headers, stock_request):
        resp = client.post(
            f"/api/warehouses/stock-requests/{stock_request.id}/approve",
            headers=warehouse_manager_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Approved via stock service"
        assert body["data"]["status"] == "approved"

    def test_second_decision_conflicts(self, client, warehouse_manager_headers, stock_request):
        base = f"/api/warehouses/stock-requests/{stock_request.id}"
        assert client.post(f"{base}/reject", headers=warehouse_manager_headers).status_code == 200
        assert client.post(f"{base}/approve", headers=warehouse_manager_headers).status_code == 409

    def test_unknown_request(self, client, warehouse_manager_headers):
        resp = client.post("/api/warehouses/stock-requests/9999/approve", headers=warehouse_manager_headers)
        assert resp.status_code == 404

    def test_stock_service_down(self, client, clients, warehouse_manager_headers, stock_request, monkeypatch):
        from stockmesh.clients import ServiceUnavailable

        def down(request_id):
            raise ServiceUnavailable("stock-service unreachable: ConnectError", service="stock-service")

        monkeypatch.setattr(clients.stock, "approve_stock_request", down)
        resp = client.post(
            f"/api/warehouses/stock-requests/{stock_request.id}/approve",
            headers=warehouse_manager_headers,
        )
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to approve via stock service"}


class TestReplenish:

    def test_forwarded_to_company(self, client, clients, warehouse_manager_headers, warehouse, product):
        resp = client.post(
            f"/api/warehouses/{warehouse.id}/replenish-requests",
            json={"company_id": 1, "product_id": product.id, "quantity": 100},
            headers=warehouse_manager_headers,
        )
        assert resp.status_code == 201
        assert clients.companies.calls == [{
            "id": 1,
            "company_id": 1,
            "warehouse_id": warehouse.id,
            "product_id": product.id,
            "quantity": 100,
            "status": "pending",
        }]

    def test_unknown_company(self, client, warehouse_manager_headers, warehouse, product):
        resp = client.post(
            f"/api/warehouses/{warehouse.id}/replenish-requests",
            json={"company_id": 42, "product_id": product.id, "quantity": 100},
            headers=warehouse_manager_headers,
        )
        assert resp.status_code == 404

    def test_quantity_must_be_positive(self, client, clients, warehouse_manager_headers, warehouse, product):
        resp = client.post(
            f"/api/warehouses/{warehouse.id}/replenish-requests",
            json={"company_id": 1, "product_id": product.id, "quantity": 0},
            headers=warehouse_manager_headers,
        )
        assert resp.status_code == 400
        assert clients.companies.calls == []
