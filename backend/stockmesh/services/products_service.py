# backend/stockmesh/services/products_service.py
"""
Product catalog service.

SKU is unique across the catalog and re-checked on every write that sets it.
Deletion is a soft delete to status=inactive so branch and warehouse product
sets never point at a vanished id.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..models.catalog import PRODUCT_STATUS_INACTIVE
from ..validation import ConflictError, NotFoundError
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {
    "company_id",
    "name",
    "description",
    "category",
    "price_cents",
    "cost_price_cents",
    "sku",
    "unit",
    "status",
    "tag_name",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_free(sku: str, *, exclude_product_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_product_id is not None:
        query = query.filter(Product.id != exclude_product_id)
    if query.first():
        raise ConflictError("SKU already exists")


def _commit_product_write() -> None:
    """Commit; a concurrent writer that took the same SKU surfaces as ConflictError."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if "sku" in str(exc.orig).lower():
            raise ConflictError("SKU already exists") from exc
        raise


def list_products(company_id: int | None = None) -> dict:
    """Newest first, optionally restricted to one company."""
    query = db.session.query(Product)
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def get_product(product_id: int) -> Product:
    p = db.session.query(Product).filter_by(id=product_id).first()
    if not p:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
    """
    _ensure_sku_free(patch["sku"])

    p = Product()
    apply_product_patch(p, patch)

    db.session.add(p)
    _commit_product_write()

    current_app.logger.info("Created product id=%s sku=%s", p.id, p.sku)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update a product.

    Raises:
        NotFoundError: unknown product
        ConflictError: If new SKU already exists
    """
    def _op():
        p = get_product(product_id)

        if "sku" in patch and patch["sku"] != p.sku:
            _ensure_sku_free(patch["sku"], exclude_product_id=p.id)

        apply_product_patch(p, patch)
        _commit_product_write()
        return p.to_dict()

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> dict:
    """Soft-delete: status becomes inactive. Repeating it is harmless."""
    def _op():
        p = get_product(product_id)
        if p.status != PRODUCT_STATUS_INACTIVE:
            p.status = PRODUCT_STATUS_INACTIVE
            db.session.commit()
            current_app.logger.info("Deactivated product id=%s sku=%s", p.id, p.sku)
        return p.to_dict()

    return run_with_retry(_op)
