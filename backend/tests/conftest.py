"""
Pytest fixtures for StockMesh backend tests.

One app serves every blueprint against an in-memory database. Sibling
services are replaced by in-process clients backed by the same services, so a
branch -> stock round trip runs the real code on both sides without HTTP.
"""

import pytest

from stockmesh import create_app
from stockmesh.clients import (
    EXTENSION_KEY,
    ServiceClients,
    ServiceUnavailable,
    UpstreamConflict,
    UpstreamNotFound,
)
from stockmesh.extensions import db
from stockmesh.models import Branch, Product, StockRecord, User, Warehouse
from stockmesh.permissions import (
    ROLE_ADMIN,
    ROLE_BRANCH_MANAGER,
    ROLE_COMPANY,
    ROLE_SALES,
    ROLE_WAREHOUSE_MANAGER,
)
from stockmesh.services import branch_service, products_service, stock_service, token_service, warehouse_service
from stockmesh.services.stock_service import StockVersionConflict
from stockmesh.services.workflow import RequestStateError
from stockmesh.validation import NotFoundError, ValidationError


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'TOKEN_SECRET': 'test-token-secret',
    'STOCK_ADJUST_ATTEMPTS': 3,
    'RESTOCK_ALLOW_TERMINAL_TRANSITIONS': False,
}


# =============================================================================
# IN-PROCESS SIBLING CLIENTS
# =============================================================================


class LocalProducts:
    """Catalog lookups against the local products table.

    Ids in `unreachable` fail like a dead connection, ids in `broken` like a
    500 from the catalog.
    """

    def __init__(self):
        self.unreachable = set()
        self.broken = set()

    def fetch(self, product_id):
        if product_id in self.unreachable:
            raise ServiceUnavailable("product-service unreachable: ConnectError", service="product-service")
        if product_id in self.broken:
            raise ServiceUnavailable("product-service returned 500", service="product-service", status_code=500)
        try:
            return products_service.get_product(product_id).to_dict()
        except NotFoundError:
            raise UpstreamNotFound("product-service returned 404", service="product-service", status_code=404)

    def exists(self, product_id):
        try:
            self.fetch(product_id)
        except UpstreamNotFound:
            return False
        return True


class LocalStock:
    """Stock client backed by stock_service.

    `interleave` holds deltas applied by a competing writer right before each
    conditional write, one per write, to reproduce a lost-update race.
    """

    def __init__(self):
        self.interleave = []
        self.writes = 0

    def list_for_branch(self, branch_id):
        return [r.to_dict() for r in stock_service.list_for_branch(branch_id)]

    def list_for_branch_product(self, branch_id, product_id):
        return [r.to_dict() for r in stock_service.list_for_branch(branch_id, product_id)]

    def list_for_warehouse(self, warehouse_id):
        return [r.to_dict() for r in stock_service.list_for_warehouse(warehouse_id)]

    def set_quantity(self, stock_id, quantity, *, expected_version=None):
        self.writes += 1
        if self.interleave:
            delta = self.interleave.pop(0)
            current = stock_service.get_stock_record(stock_id)
            stock_service.set_quantity(stock_id, current.quantity + delta)
        try:
            return stock_service.set_quantity(stock_id, quantity, expected_version=expected_version).to_dict()
        except StockVersionConflict as e:
            raise UpstreamConflict(str(e), service="stock-service", status_code=409)
        except NotFoundError:
            raise UpstreamNotFound("stock-service returned 404", service="stock-service", status_code=404)

    def create_stock_request(self, *, warehouse_id, branch_id, product_id, quantity):
        return stock_service.create_stock_request(
            warehouse_id=warehouse_id,
            branch_id=branch_id,
            product_id=product_id,
            quantity=quantity,
        ).to_dict()

    def _decide(self, request_id, decision):
        try:
            return stock_service.decide_stock_request(request_id, decision).to_dict()
        except NotFoundError:
            raise UpstreamNotFound("stock-service returned 404", service="stock-service", status_code=404)
        except RequestStateError as e:
            raise UpstreamConflict(str(e), service="stock-service", status_code=409)

    def approve_stock_request(self, request_id):
        return self._decide(request_id, "approve")

    def reject_stock_request(self, request_id):
        return self._decide(request_id, "reject")


class LocalWarehouses:
    def get(self, warehouse_id):
        try:
            return warehouse_service.get_warehouse(warehouse_id).to_dict()
        except NotFoundError:
            raise UpstreamNotFound("warehouse-service returned 404", service="warehouse-service", status_code=404)


class LocalBranches:
    def list_for_warehouse(self, warehouse_id):
        return [b.to_dict() for b in branch_service.list_branches(warehouse_id=warehouse_id)]


class RecordingCompanies:
    """Company service stand-in that records replenish requests."""

    def __init__(self):
        self.calls = []
        self.known_companies = {1}

    def create_replenish_request(self, company_id, *, warehouse_id, product_id, quantity):
        if company_id not in self.known_companies:
            raise UpstreamNotFound("company-service returned 404", service="company-service", status_code=404)
        body = {
            "id": len(self.calls) + 1,
            "company_id": company_id,
            "warehouse_id": warehouse_id,
            "product_id": product_id,
            "quantity": quantity,
            "status": "pending",
        }
        self.calls.append(body)
        return body


# =============================================================================
# APP / DB
# =============================================================================


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(config_overrides=TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def clients(app):
    """Fresh sibling clients for each test."""
    bundle = ServiceClients(
        products=LocalProducts(),
        stock=LocalStock(),
        warehouses=LocalWarehouses(),
        branches=LocalBranches(),
        companies=RecordingCompanies(),
    )
    app.extensions[EXTENSION_KEY] = bundle
    return bundle


@pytest.fixture(scope='function')
def client(app, clients):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# USERS / TOKENS
# =============================================================================


def _make_user(db_session, role):
    user = User(
        username=f"{role}-user",
        email=f"{role}@stockmesh.test",
        # Tokens are minted directly; these accounts never log in.
        password_hash="not-a-bcrypt-hash",
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Factory: headers_for(role) -> Authorization headers for a fresh user of that role."""
    cache = {}

    def _headers(role):
        if role not in cache:
            user = _make_user(db_session, role)
            cache[role] = auth_headers(token_service.issue_token(user))
        return cache[role]

    return _headers


@pytest.fixture(scope='function')
def admin_headers(headers_for):
    return headers_for(ROLE_ADMIN)


@pytest.fixture(scope='function')
def company_headers(headers_for):
    return headers_for(ROLE_COMPANY)


@pytest.fixture(scope='function')
def warehouse_manager_headers(headers_for):
    return headers_for(ROLE_WAREHOUSE_MANAGER)


@pytest.fixture(scope='function')
def branch_manager_headers(headers_for):
    return headers_for(ROLE_BRANCH_MANAGER)


@pytest.fixture(scope='function')
def sales_headers(headers_for):
    return headers_for(ROLE_SALES)


# =============================================================================
# DOMAIN DATA
# =============================================================================


def make_product(db_session, sku, **overrides):
    fields = {
        "company_id": 1,
        "name": f"Product {sku}",
        "description": "Test product",
        "category": "General",
        "price_cents": 1000,
        "cost_price_cents": 600,
        "sku": sku,
        "unit": "pcs",
    }
    fields.update(overrides)
    product = Product(**fields)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def warehouse(db_session):
    wh = Warehouse(name="Central", location="Harbor Road 1", product_ids=[])
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def branch(db_session, warehouse):
    br = Branch(name="Downtown", location="Main St 5", warehouse_id=warehouse.id, product_ids=[])
    db_session.add(br)
    db_session.commit()
    return br


@pytest.fixture(scope='function')
def product(db_session):
    return make_product(db_session, "SKU-001")


@pytest.fixture(scope='function')
def branch_stock(db_session, branch, product):
    """10 units of `product` at `branch`."""
    record = StockRecord(branch_id=branch.id, product_id=product.id, quantity=10)
    db_session.add(record)
    db_session.commit()
    return record
