# Overview: Product-set membership and best-effort product aggregation for branches and warehouses.

"""
Branches and warehouses both own an ordered, duplicate-free list of catalog
product ids. Changes go through assign_product / remove_product only.

CONCURRENCY:
The owner row carries version_id. Two writers that read the same version
cannot both commit: the loser gets StaleDataError, run_with_retry rolls back
and the membership check runs again against fresh data. A concurrent duplicate
assign therefore ends as ConflictError instead of a double entry.
"""
from __future__ import annotations

from flask import current_app

from ..clients import ServiceUnavailable, UpstreamNotFound
from ..extensions import db
from ..validation import ConflictError, NotFoundError
from .concurrency import run_with_retry


def _owner_label(model) -> str:
    return model.__name__.lower()


def get_owner(model, owner_id: int):
    owner = db.session.query(model).filter_by(id=owner_id).first()
    if not owner:
        raise NotFoundError(f"{model.__name__} not found")
    return owner


def assign_product(model, owner_id: int, product_id: int, products) -> tuple:
    """
    Add product_id to the owner's product set.

    Args:
        model: Branch or Warehouse
        owner_id: owner primary key
        product_id: catalog id (already checked for well-formedness)
        products: ProductLookup used to confirm the product exists

    Returns:
        (owner, product) where product is the catalog record

    Raises:
        NotFoundError: product confirmed absent, or owner absent
        ConflictError: product already in the set
        ServiceUnavailable: catalog could not be asked
    """
    try:
        product = products.fetch(product_id)
    except UpstreamNotFound:
        raise NotFoundError("Product not found")

    label = _owner_label(model)

    def _op():
        owner = get_owner(model, owner_id)
        current = list(owner.product_ids or [])
        if product_id in current:
            raise ConflictError(f"Product is already assigned to this {label}")
        owner.product_ids = current + [product_id]
        db.session.commit()
        return owner

    owner = run_with_retry(_op)
    current_app.logger.info("Assigned product %s to %s %s", product_id, label, owner_id)
    return owner, product


def remove_product(model, owner_id: int, product_id: int):
    """
    Drop product_id from the owner's product set.

    Raises:
        NotFoundError: owner absent
        ConflictError: product is not a member
    """
    label = _owner_label(model)

    def _op():
        owner = get_owner(model, owner_id)
        current = list(owner.product_ids or [])
        if product_id not in current:
            raise ConflictError(f"Product is not assigned to this {label}")
        owner.product_ids = [pid for pid in current if pid != product_id]
        db.session.commit()
        return owner

    owner = run_with_retry(_op)
    current_app.logger.info("Removed product %s from %s %s", product_id, label, owner_id)
    return owner


def collect_products(product_ids: list[int], products) -> list[dict]:
    """
    Fetch each product from the catalog, keeping the ones that come back.

    A failed fetch is logged and skipped. The call only fails when there was
    something to fetch and every attempt failed to reach the catalog at all
    (no HTTP status), i.e. the catalog is down rather than missing records.
    """
    collected = []
    unreachable = 0

    for product_id in product_ids:
        try:
            collected.append(products.fetch(product_id))
        except UpstreamNotFound:
            current_app.logger.warning("Skipping product %s: not found in catalog", product_id)
        except ServiceUnavailable as exc:
            if exc.status_code is None:
                unreachable += 1
            current_app.logger.warning("Skipping product %s: %s", product_id, exc)

    if product_ids and unreachable == len(product_ids):
        raise ServiceUnavailable("product-service unreachable", service="product-service")

    return collected
