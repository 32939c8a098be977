# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS
- Write operations require MANAGE_PRODUCTS
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_capability
from ..models import Product
from ..services import products_service
from ..services.concurrency import ConcurrentUpdateError
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
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
    },
    required_on_create={
        "company_id",
        "name",
        "description",
        "category",
        "price_cents",
        "cost_price_cents",
        "sku",
        "unit",
    },
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability("VIEW_PRODUCTS")
def list_products():
    """List all products, newest first."""
    return jsonify(products_service.list_products()), 200


@products_bp.get("/company/<int:company_id>")
@require_auth
@require_capability("VIEW_PRODUCTS")
def list_company_products(company_id: int):
    return jsonify(products_service.list_products(company_id=company_id)), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability("VIEW_PRODUCTS")
def get_product(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
@require_capability("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product.

    Returns:
        201: product
        400: validation failure or duplicate SKU
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(updated), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete (status -> inactive)."""
    try:
        product = products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(product), 200
