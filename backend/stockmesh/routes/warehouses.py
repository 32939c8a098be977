# Overview: Flask API routes for warehouses, warehouse views and stock request decisions.

from flask import Blueprint, current_app, jsonify, request

from ..clients import ServiceUnavailable, UpstreamConflict, get_clients
from ..decorators import require_auth, require_capability
from ..models import Warehouse
from ..services import warehouse_service
from ..services.concurrency import ConcurrentUpdateError
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_quantity,
    parse_identifier,
    parse_int,
    validate_payload,
)

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location", "manager_id"},
    required_on_create={"name", "location"},
)

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.post("")
@require_auth
@require_capability("MANAGE_WAREHOUSES")
def create_warehouse():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
        if patch.get("manager_id") is not None:
            patch["manager_id"] = parse_identifier(patch["manager_id"], "manager_id")
        warehouse = warehouse_service.create_warehouse(patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create warehouse")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(warehouse.to_dict()), 201


@warehouses_bp.get("")
@require_auth
@require_capability("VIEW_WAREHOUSES")
def list_warehouses():
    warehouses = warehouse_service.list_warehouses()
    return jsonify({"items": [w.to_dict() for w in warehouses], "count": len(warehouses)}), 200


@warehouses_bp.get("/<int:warehouse_id>")
@require_auth
@require_capability("VIEW_WAREHOUSES")
def get_warehouse(warehouse_id: int):
    try:
        warehouse = warehouse_service.get_warehouse(warehouse_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(warehouse.to_dict()), 200


@warehouses_bp.get("/<int:warehouse_id>/with-branches")
@require_auth
@require_capability("VIEW_WAREHOUSES")
def get_warehouse_with_branches(warehouse_id: int):
    try:
        result = warehouse_service.get_warehouse_with_branches(warehouse_id, get_clients().branches)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Branch service failed for warehouse %s", warehouse_id)
        return jsonify({"error": "Failed to fetch warehouse branches"}), 500

    return jsonify(result), 200


@warehouses_bp.get("/<int:warehouse_id>/stock")
@require_auth
@require_capability("VIEW_STOCK")
def get_warehouse_stock(warehouse_id: int):
    try:
        result = warehouse_service.get_warehouse_stock(warehouse_id, get_clients().stock)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Stock service failed for warehouse %s", warehouse_id)
        return jsonify({"error": "Failed to fetch stock data"}), 500

    return jsonify(result), 200


def _decide_stock_request(request_id: int, decision: str):
    try:
        result = warehouse_service.decide_stock_request(request_id, decision, get_clients().stock)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UpstreamConflict as e:
        return jsonify({"error": str(e)}), 409
    except ServiceUnavailable:
        current_app.logger.exception("Stock service failed to %s request %s", decision, request_id)
        return jsonify({"error": f"Failed to {decision} via stock service"}), 500

    verb = "Approved" if decision == "approve" else "Rejected"
    return jsonify({"message": f"{verb} via stock service", "data": result}), 200


@warehouses_bp.post("/stock-requests/<int:request_id>/approve")
@require_auth
@require_capability("DECIDE_RESTOCK")
def approve_stock_request(request_id: int):
    return _decide_stock_request(request_id, "approve")


@warehouses_bp.post("/stock-requests/<int:request_id>/reject")
@require_auth
@require_capability("DECIDE_RESTOCK")
def reject_stock_request(request_id: int):
    return _decide_stock_request(request_id, "reject")


@warehouses_bp.post("/<int:warehouse_id>/replenish-requests")
@require_auth
@require_capability("MANAGE_WAREHOUSES")
def request_replenish(warehouse_id: int):
    """
    Forward a replenish request to the owning company.

    Request body:
    {
        "company_id": int,
        "product_id": int,
        "quantity": int
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        company_id = parse_identifier(data.get("company_id"), "company_id")
        product_id = parse_identifier(data.get("product_id"), "product_id")
        quantity = parse_int(data.get("quantity"), "quantity")
        enforce_rules_quantity({"quantity": quantity})
        result = warehouse_service.request_replenish(
            warehouse_id=warehouse_id,
            company_id=company_id,
            product_id=product_id,
            quantity=quantity,
            companies=get_clients().companies,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Company service failed for warehouse %s", warehouse_id)
        return jsonify({"error": "Failed to send replenish request"}), 500

    return jsonify(result), 201


@warehouses_bp.get("/<warehouse_id>/products")
@require_auth
@require_capability("VIEW_WAREHOUSES")
def get_warehouse_products(warehouse_id: str):
    try:
        warehouse_id = parse_identifier(warehouse_id, "warehouse_id")
        products = warehouse_service.get_warehouse_products(warehouse_id, get_clients().products)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Product service unreachable for warehouse %s", warehouse_id)
        return jsonify({"error": "Failed to fetch warehouse products"}), 500

    return jsonify({"items": products, "count": len(products)}), 200


@warehouses_bp.post("/<warehouse_id>/products")
@require_auth
@require_capability("ASSIGN_PRODUCTS")
def assign_product_to_warehouse(warehouse_id: str):
    data = request.get_json(silent=True) or {}

    try:
        warehouse_id = parse_identifier(warehouse_id, "warehouse_id")
        product_id = parse_identifier(data.get("product_id"), "product_id")
        warehouse, product = warehouse_service.assign_product(warehouse_id, product_id, get_clients().products)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409
    except ServiceUnavailable:
        current_app.logger.exception("Product service failed while assigning to warehouse %s", warehouse_id)
        return jsonify({"error": "Failed to assign product to warehouse"}), 500

    return jsonify({
        "message": "Product assigned successfully",
        "warehouse": warehouse.to_dict(),
        "product": product,
    }), 200


@warehouses_bp.delete("/<warehouse_id>/products/<product_id>")
@warehouses_bp.delete("/<warehouse_id>/products", defaults={"product_id": None})
@require_auth
@require_capability("ASSIGN_PRODUCTS")
def remove_product_from_warehouse(warehouse_id: str, product_id: str | None):
    """Product id comes from the path, or from the JSON body on the bare collection URL."""
    try:
        warehouse_id = parse_identifier(warehouse_id, "warehouse_id")
        if product_id is None:
            data = request.get_json(silent=True) or {}
            product_id = data.get("product_id")
        product_id = parse_identifier(product_id, "product_id")
        warehouse = warehouse_service.remove_product(warehouse_id, product_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"message": "Product removed successfully", "warehouse": warehouse.to_dict()}), 200
