"""
Product set tests for branches and warehouses.

Verifies:
- Assign / remove keep the set duplicate-free
- A concurrent duplicate assign cannot double-insert
- Product listing skips ids the catalog cannot return
"""

import pytest

from stockmesh.models import Branch, User, Warehouse
from stockmesh.services import membership_service
from stockmesh.validation import ConflictError

from conftest import make_product


OWNERS = [
    pytest.param("branches", Branch, id="branch"),
    pytest.param("warehouses", Warehouse, id="warehouse"),
]


def _owner_id(kind, branch, warehouse):
    return branch.id if kind == "branches" else warehouse.id


def _base(kind, owner_id):
    return f"/api/{kind}/{owner_id}/products"


class TestAssignRemove:

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_assign_then_list(self, client, db_session, admin_headers, branch, warehouse, product, kind, model):
        base = _base(kind, _owner_id(kind, branch, warehouse))

        resp = client.post(base, json={"product_id": product.id}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["product"]["sku"] == product.sku

        resp = client.get(base, headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["items"][0]["id"] == product.id

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_duplicate_assign_rejected(self, client, db_session, admin_headers, branch, warehouse, product, kind, model):
        owner_id = _owner_id(kind, branch, warehouse)
        base = _base(kind, owner_id)

        assert client.post(base, json={"product_id": product.id}, headers=admin_headers).status_code == 200
        resp = client.post(base, json={"product_id": product.id}, headers=admin_headers)
        assert resp.status_code == 400
        assert "already assigned" in resp.get_json()["error"]

        db_session.expire_all()
        assert db_session.get(model, owner_id).product_ids == [product.id]

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_assign_unknown_product(self, client, admin_headers, branch, warehouse, kind, model):
        base = _base(kind, _owner_id(kind, branch, warehouse))
        resp = client.post(base, json={"product_id": 9999}, headers=admin_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_assign_malformed_product_id(self, client, admin_headers, branch, warehouse, kind, model):
        base = _base(kind, _owner_id(kind, branch, warehouse))
        resp = client.post(base, json={"product_id": "abc"}, headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_assign_when_catalog_down(self, client, clients, admin_headers, branch, warehouse, product, kind, model):
        clients.products.unreachable.add(product.id)
        base = _base(kind, _owner_id(kind, branch, warehouse))
        resp = client.post(base, json={"product_id": product.id}, headers=admin_headers)
        assert resp.status_code == 500
        assert "Traceback" not in resp.get_data(as_text=True)

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_remove(self, client, db_session, admin_headers, branch, warehouse, product, kind, model):
        owner_id = _owner_id(kind, branch, warehouse)
        base = _base(kind, owner_id)
        client.post(base, json={"product_id": product.id}, headers=admin_headers)

        resp = client.delete(f"{base}/{product.id}", headers=admin_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(model, owner_id).product_ids == []

    @pytest.mark.parametrize("kind,model", OWNERS)
    def test_remove_non_member(self, client, admin_headers, branch, warehouse, product, kind, model):
        base = _base(kind, _owner_id(kind, branch, warehouse))
        resp = client.delete(f"{base}/{product.id}", headers=admin_headers)
        assert resp.status_code == 400
        assert "not assigned" in resp.get_json()["error"]

    def test_warehouse_remove_with_body(self, client, db_session, admin_headers, warehouse, product):
        base = _base("warehouses", warehouse.id)
        client.post(base, json={"product_id": product.id}, headers=admin_headers)

        resp = client.delete(base, json={"product_id": product.id}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["warehouse"]["product_ids"] == []

    @pytest.mark.parametrize("kind", ["branches", "warehouses"])
    @pytest.mark.parametrize("owner_id", ["abc", "0", "-3", "1.5"])
    def test_malformed_owner_id(self, client, admin_headers, product, kind, owner_id):
        base = _base(kind, owner_id)
        resp = client.post(base, json={"product_id": product.id}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.is_json
        assert resp.get_json()["error"]

        assert client.get(base, headers=admin_headers).status_code == 400
        assert client.delete(f"{base}/{product.id}", headers=admin_headers).status_code == 400

    @pytest.mark.parametrize("kind", ["branches", "warehouses"])
    def test_malformed_product_id_in_path(self, client, admin_headers, branch, warehouse, kind):
        base = _base(kind, _owner_id(kind, branch, warehouse))
        resp = client.delete(f"{base}/abc", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid product_id"}

    def test_unknown_owner(self, client, admin_headers, product):
        resp = client.post("/api/branches/9999/products", json={"product_id": product.id}, headers=admin_headers)
        assert resp.status_code == 404

    def test_sales_cannot_assign(self, client, sales_headers, branch, product):
        resp = client.post(_base("branches", branch.id), json={"product_id": product.id}, headers=sales_headers)
        assert resp.status_code == 403


class TestConcurrentAssign:

    def test_duplicate_from_stale_writer_is_detected(self, db_session, clients, branch, product, monkeypatch):
        """
        A second writer commits the same product after our read. Our flush
        still carries the old version_id, matches no row and raises
        StaleDataError; the retry re-reads and reports the duplicate.
        """
        branch_id = branch.id
        product_id = product.id
        branches = Branch.__table__
        real_get_owner = membership_service.get_owner
        seen_versions = []

        def get_owner_then_race(model, owner_id):
            owner = real_get_owner(model, owner_id)
            seen_versions.append(owner.version_id)
            if len(seen_versions) == 1:
                db_session.execute(
                    branches.update()
                    .where(branches.c.id == owner_id)
                    .values(product_ids=[product_id], version_id=owner.version_id + 1)
                )
                db_session.commit()
            return owner

        # keep our loaded owner stale across the competing commit
        monkeypatch.setattr(db_session(), "expire_on_commit", False)
        monkeypatch.setattr(membership_service, "get_owner", get_owner_then_race)

        with pytest.raises(ConflictError):
            membership_service.assign_product(Branch, branch_id, product_id, clients.products)

        first_seen, reread = seen_versions
        assert reread == first_seen + 1

        monkeypatch.undo()
        db_session.expire_all()
        stored = db_session.get(Branch, branch_id)
        assert stored.product_ids == [product_id]
        assert stored.version_id == first_seen + 1


class TestAggregation:

    def test_skips_missing_and_failing_products(self, client, db_session, clients, admin_headers, branch):
        p1 = make_product(db_session, "P1")
        p2 = make_product(db_session, "P2")
        p3 = make_product(db_session, "P3")
        stored = db_session.get(Branch, branch.id)
        stored.product_ids = [p1.id, p2.id, p3.id, 9999]
        db_session.commit()

        clients.products.broken.add(p2.id)

        resp = client.get(_base("branches", branch.id), headers=admin_headers)
        assert resp.status_code == 200
        assert [p["sku"] for p in resp.get_json()["items"]] == ["P1", "P3"]

    def test_empty_set(self, client, admin_headers, warehouse):
        resp = client.get(_base("warehouses", warehouse.id), headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"items": [], "count": 0}

    def test_catalog_unreachable_for_every_product(self, client, db_session, clients, admin_headers, branch):
        p1 = make_product(db_session, "P1")
        p2 = make_product(db_session, "P2")
        stored = db_session.get(Branch, branch.id)
        stored.product_ids = [p1.id, p2.id]
        db_session.commit()

        clients.products.unreachable.update({p1.id, p2.id})

        resp = client.get(_base("branches", branch.id), headers=admin_headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to fetch branch products"}


class TestBranchScenario:

    def test_create_assign_list_remove(self, client, db_session, company_headers, branch_manager_headers, warehouse, product):
        manager = db_session.query(User).filter_by(role="branch-manager").one()

        resp = client.post(
            "/api/branches",
            json={"name": "Riverside", "location": "Quay 9", "warehouse_id": warehouse.id, "manager_id": manager.id},
            headers=company_headers,
        )
        assert resp.status_code == 201
        branch_id = resp.get_json()["data"]["id"]
        base = _base("branches", branch_id)

        assert client.post(base, json={"product_id": product.id}, headers=branch_manager_headers).status_code == 200
        assert [p["id"] for p in client.get(base, headers=branch_manager_headers).get_json()["items"]] == [product.id]

        assert client.delete(f"{base}/{product.id}", headers=branch_manager_headers).status_code == 200
        assert client.get(base, headers=branch_manager_headers).get_json()["items"] == []
