# backend/stockmesh/services/branch_service.py
"""
Branch service: branch records plus the views and stock moves that need a
sibling service (warehouse directory, stock service, product catalog).

Stock adjustment is read -> compute -> conditional write against the stock
service, retried when another writer bumped the record's version in between.
"""
from __future__ import annotations

from flask import current_app

from ..clients import UpstreamConflict, UpstreamNotFound
from ..extensions import db
from ..models import Branch
from ..validation import NotFoundError, ValidationError
from . import membership_service
from .concurrency import ConcurrentUpdateError

BRANCH_MUTABLE_FIELDS = {"name", "location", "warehouse_id", "manager_id"}


def create_branch(*, patch: dict) -> Branch:
    branch = Branch(product_ids=[])
    for k, v in patch.items():
        if k in BRANCH_MUTABLE_FIELDS:
            setattr(branch, k, v)

    db.session.add(branch)
    db.session.commit()
    current_app.logger.info("Created branch id=%s warehouse_id=%s", branch.id, branch.warehouse_id)
    return branch


def list_branches(warehouse_id: int | None = None) -> list[Branch]:
    query = db.session.query(Branch)
    if warehouse_id is not None:
        query = query.filter(Branch.warehouse_id == warehouse_id)
    return query.order_by(Branch.id.asc()).all()


def get_branch(branch_id: int) -> Branch:
    return membership_service.get_owner(Branch, branch_id)


def get_branch_with_warehouse(branch_id: int, warehouses) -> dict:
    """
    Branch record plus its warehouse, fetched live from the warehouse service.

    Raises:
        NotFoundError: branch missing, or warehouse service confirms the
            referenced warehouse is missing
        ServiceUnavailable: warehouse service failed otherwise
    """
    branch = get_branch(branch_id)
    try:
        warehouse = warehouses.get(branch.warehouse_id)
    except UpstreamNotFound:
        raise NotFoundError("Warehouse not found")
    return {"branch": branch.to_dict(), "warehouse": warehouse}


def get_branch_stock(branch_id: int, stock) -> list[dict]:
    get_branch(branch_id)
    try:
        return stock.list_for_branch(branch_id)
    except UpstreamNotFound:
        return []


def adjust_branch_stock(branch_id: int, product_id: int, delta: int, *, stock, attempts: int = 5) -> dict:
    """
    Apply a signed quantity change to the branch's stock of one product.

    Positive delta replenishes, negative delta consumes. When several stock
    records match the pair the first one (lowest id) is used.

    Args:
        branch_id: branch owning the stock
        product_id: product whose quantity changes
        delta: signed change
        stock: StockClient
        attempts: how many read/write rounds to try before giving up

    Returns:
        The stock record as written by the stock service.

    Raises:
        NotFoundError: branch unknown, or no stock record for the pair
        ValidationError: the result would be negative
        ConcurrentUpdateError: lost the race on every attempt
        ServiceUnavailable: stock service failed
    """
    get_branch(branch_id)

    for attempt in range(attempts):
        try:
            records = stock.list_for_branch_product(branch_id, product_id)
        except UpstreamNotFound:
            records = []
        if not records:
            raise NotFoundError("Stock record not found for this product in branch")

        record = records[0]
        new_quantity = record["quantity"] + delta
        if new_quantity < 0:
            raise ValidationError(
                f"Insufficient stock: on hand {record['quantity']}, change {delta}"
            )

        try:
            updated = stock.set_quantity(
                record["id"],
                new_quantity,
                expected_version=record.get("version_id"),
            )
        except UpstreamConflict:
            current_app.logger.info(
                "Stock record %s changed underneath adjustment (attempt %s/%s)",
                record["id"], attempt + 1, attempts,
            )
            continue
        except UpstreamNotFound:
            raise NotFoundError("Stock record not found for this product in branch")

        current_app.logger.info(
            "Adjusted branch %s product %s by %s: %s -> %s",
            branch_id, product_id, delta, record["quantity"], new_quantity,
        )
        return updated

    raise ConcurrentUpdateError("Concurrent update; retry the request")


def get_branch_products(branch_id: int, products) -> list[dict]:
    branch = get_branch(branch_id)
    return membership_service.collect_products(list(branch.product_ids or []), products)


def assign_product(branch_id: int, product_id: int, products) -> tuple[Branch, dict]:
    return membership_service.assign_product(Branch, branch_id, product_id, products)


def remove_product(branch_id: int, product_id: int) -> Branch:
    return membership_service.remove_product(Branch, branch_id, product_id)


def place_stock_request(*, branch_id: int, warehouse_id: int | None, product_id: int, quantity: int, stock) -> dict:
    """
    Ask the stock service for a warehouse -> branch stock request.

    warehouse_id defaults to the branch's own warehouse.
    """
    branch = get_branch(branch_id)
    return stock.create_stock_request(
        warehouse_id=warehouse_id or branch.warehouse_id,
        branch_id=branch.id,
        product_id=product_id,
        quantity=quantity,
    )
