"""
App-level tests: health, CORS, per-process service selection, the generic
error handler, and the HTTP sibling clients.
"""

import json

import httpx
import pytest

from stockmesh import create_app
from stockmesh.clients import (
    ProductLookup,
    ServiceUnavailable,
    StockClient,
    UpstreamConflict,
    UpstreamNotFound,
    build_clients,
)
from stockmesh.clients.directories import BranchDirectory

from conftest import TEST_CONFIG


class TestHealth:

    def test_healthy(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert set(body["services"]) == {"identity", "products", "branches", "warehouses", "stocks"}


class TestCors:

    def test_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_other_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestServiceSelection:

    def test_only_enabled_blueprints_are_served(self):
        app = create_app(config_overrides={**TEST_CONFIG, "ENABLED_SERVICES": ["products"]})
        with app.app_context():
            rules = {rule.rule for rule in app.url_map.iter_rules()}
        assert "/api/products" in rules
        assert "/health" in rules
        assert not any(r.startswith("/api/branches") for r in rules)
        assert not any(r.startswith("/api/auth") for r in rules)

    def test_unknown_service_name(self):
        with pytest.raises(ValueError):
            create_app(config_overrides={**TEST_CONFIG, "ENABLED_SERVICES": ["billing"]})


class TestUnexpectedErrors:

    def test_generic_500_without_details(self, client, clients, sales_headers, branch, product, branch_stock, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("secret internals at /srv/app.py line 12")

        monkeypatch.setattr(clients.stock, "list_for_branch", explode)
        resp = client.get(f"/api/branches/{branch.id}/stock", headers=sales_headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}

    def test_unknown_route_is_json_404(self, client, db_session):
        resp = client.get("/api/nowhere")
        assert resp.status_code == 404
        assert resp.is_json
        assert resp.get_json()["error"]

    def test_wrong_method_is_json_405(self, client, db_session):
        resp = client.patch("/api/warehouses")
        assert resp.status_code == 405
        assert resp.is_json
        assert resp.get_json()["error"]

    def test_bad_int_segment_is_json_404(self, client, sales_headers):
        resp = client.get("/api/products/abc", headers=sales_headers)
        assert resp.status_code == 404
        assert resp.is_json


# =============================================================================
# HTTP SIBLING CLIENTS
# =============================================================================


def _transport(handler):
    return httpx.MockTransport(handler)


class TestServiceClients:

    def test_build_from_config(self, app):
        bundle = build_clients(app.config)
        assert bundle.products.base_url == app.config["PRODUCT_SERVICE_URL"].rstrip("/")
        assert bundle.stock.timeout == float(app.config["SERVICE_TIMEOUT_SECONDS"])

    def test_forwards_bearer_token(self, app):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json={"id": 7, "name": "Tea"})

        lookup = ProductLookup("http://catalog", transport=_transport(handler))
        with app.test_request_context(headers={"Authorization": "Bearer abc"}):
            assert lookup.fetch(7) == {"id": 7, "name": "Tea"}
        assert seen == {"auth": "Bearer abc", "path": "/api/products/7"}

    @pytest.mark.parametrize("status,error", [
        (404, UpstreamNotFound),
        (409, UpstreamConflict),
        (500, ServiceUnavailable),
        (400, ServiceUnavailable),
    ])
    def test_status_mapping(self, app, status, error):
        lookup = ProductLookup("http://catalog", transport=_transport(lambda r: httpx.Response(status, json={"error": "x"})))
        with app.test_request_context():
            with pytest.raises(error) as excinfo:
                lookup.fetch(1)
        assert excinfo.value.status_code == status

    def test_connection_failure_has_no_status(self, app):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        lookup = ProductLookup("http://catalog", transport=_transport(handler))
        with app.test_request_context():
            with pytest.raises(ServiceUnavailable) as excinfo:
                lookup.fetch(1)
        assert excinfo.value.status_code is None

    def test_exists(self, app):
        lookup = ProductLookup("http://catalog", transport=_transport(lambda r: httpx.Response(404, json={})))
        with app.test_request_context():
            assert lookup.exists(3) is False

    def test_conditional_write_body(self, app):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.read()
            return httpx.Response(200, json={"id": 1, "quantity": 4, "version_id": 3})

        stock = StockClient("http://stock/", transport=_transport(handler))
        with app.test_request_context():
            stock.set_quantity(1, 4, expected_version=2)
        assert seen["method"] == "PUT"
        assert json.loads(seen["body"]) == {"quantity": 4, "version_id": 2}

    def test_branch_directory_404_is_empty(self, app):
        directory = BranchDirectory("http://branches", transport=_transport(lambda r: httpx.Response(404, json={})))
        with app.test_request_context():
            assert directory.list_for_warehouse(5) == []
