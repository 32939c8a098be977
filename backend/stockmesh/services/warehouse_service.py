# backend/stockmesh/services/warehouse_service.py
"""
Warehouse service: warehouse records and the views that pull from the branch,
stock, company and catalog services.

Stock request decisions are relayed to the stock service, which owns them.
"""
from __future__ import annotations

from flask import current_app

from ..clients import UpstreamNotFound
from ..extensions import db
from ..models import Warehouse
from ..validation import NotFoundError
from . import membership_service

WAREHOUSE_MUTABLE_FIELDS = {"name", "location", "manager_id"}


def create_warehouse(*, patch: dict) -> Warehouse:
    warehouse = Warehouse(product_ids=[])
    for k, v in patch.items():
        if k in WAREHOUSE_MUTABLE_FIELDS:
            setattr(warehouse, k, v)

    db.session.add(warehouse)
    db.session.commit()
    current_app.logger.info("Created warehouse id=%s", warehouse.id)
    return warehouse


def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.id.asc()).all()


def get_warehouse(warehouse_id: int) -> Warehouse:
    return membership_service.get_owner(Warehouse, warehouse_id)


def get_warehouse_with_branches(warehouse_id: int, branches) -> dict:
    warehouse = get_warehouse(warehouse_id)
    return {
        "warehouse": warehouse.to_dict(),
        "branches": branches.list_for_warehouse(warehouse_id),
    }


def get_warehouse_stock(warehouse_id: int, stock) -> dict:
    get_warehouse(warehouse_id)
    try:
        records = stock.list_for_warehouse(warehouse_id)
    except UpstreamNotFound:
        records = []
    return {"warehouse_id": warehouse_id, "stock": records}


def decide_stock_request(request_id: int, decision: str, stock) -> dict:
    """
    Relay approve/reject to the stock service.

    Raises:
        NotFoundError: stock service has no such request
        UpstreamConflict: request already decided
        ServiceUnavailable: stock service failed
    """
    relay = stock.approve_stock_request if decision == "approve" else stock.reject_stock_request
    try:
        result = relay(request_id)
    except UpstreamNotFound:
        raise NotFoundError("Stock request not found")

    current_app.logger.info("Relayed %s of stock request %s", decision, request_id)
    return result


def request_replenish(*, warehouse_id: int, company_id: int, product_id: int, quantity: int, companies) -> dict:
    get_warehouse(warehouse_id)
    try:
        return companies.create_replenish_request(
            company_id,
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity=quantity,
        )
    except UpstreamNotFound:
        raise NotFoundError("Company not found")


def get_warehouse_products(warehouse_id: int, products) -> list[dict]:
    warehouse = get_warehouse(warehouse_id)
    return membership_service.collect_products(list(warehouse.product_ids or []), products)


def assign_product(warehouse_id: int, product_id: int, products) -> tuple[Warehouse, dict]:
    return membership_service.assign_product(Warehouse, warehouse_id, product_id, products)


def remove_product(warehouse_id: int, product_id: int) -> Warehouse:
    return membership_service.remove_product(Warehouse, warehouse_id, product_id)
