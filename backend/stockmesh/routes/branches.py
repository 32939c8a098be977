# Overview: Flask API routes for branches, branch stock, restock requests and branch product sets.

"""
Branch service routes.

Cross-service calls go through the clients bundle (get_clients()). Errors map as:
- ValidationError / ConflictError -> 400
- NotFoundError -> 404
- RequestStateError / ConcurrentUpdateError -> 409
- ServiceUnavailable -> 500 with a fixed message
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..clients import ServiceUnavailable, get_clients
from ..decorators import require_auth, require_capability
from ..models import Branch
from ..services import branch_service, restock_service
from ..services.concurrency import ConcurrentUpdateError
from ..services.workflow import RequestStateError
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_quantity,
    parse_identifier,
    parse_int,
    validate_payload,
)

BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location", "warehouse_id", "manager_id"},
    required_on_create={"name", "location", "warehouse_id"},
)

branches_bp = Blueprint("branches", __name__, url_prefix="/api")


@branches_bp.post("/branches")
@require_auth
@require_capability("MANAGE_BRANCHES")
def create_branch():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=False)
        patch["warehouse_id"] = parse_identifier(patch["warehouse_id"], "warehouse_id")
        if patch.get("manager_id") is not None:
            patch["manager_id"] = parse_identifier(patch["manager_id"], "manager_id")
        branch = branch_service.create_branch(patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create branch")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Branch created successfully", "data": branch.to_dict()}), 201


@branches_bp.get("/branches")
@require_auth
@require_capability("VIEW_BRANCHES")
def list_branches():
    branches = branch_service.list_branches()
    return jsonify({"items": [b.to_dict() for b in branches], "count": len(branches)}), 200


@branches_bp.get("/branches/<int:branch_id>")
@require_auth
@require_capability("VIEW_BRANCHES")
def get_branch(branch_id: int):
    try:
        branch = branch_service.get_branch(branch_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(branch.to_dict()), 200


@branches_bp.get("/branches/warehouse/<int:warehouse_id>")
@require_auth
@require_capability("VIEW_BRANCHES")
def list_branches_by_warehouse(warehouse_id: int):
    branches = branch_service.list_branches(warehouse_id=warehouse_id)
    return jsonify({"items": [b.to_dict() for b in branches], "count": len(branches)}), 200


@branches_bp.get("/branch-with-warehouse/<int:branch_id>")
@require_auth
@require_capability("VIEW_BRANCHES")
def get_branch_with_warehouse(branch_id: int):
    try:
        result = branch_service.get_branch_with_warehouse(branch_id, get_clients().warehouses)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Failed to fetch warehouse for branch %s", branch_id)
        return jsonify({"error": "Failed to fetch branch with warehouse info"}), 500

    return jsonify(result), 200


@branches_bp.get("/branches/<int:branch_id>/stock")
@require_auth
@require_capability("VIEW_STOCK")
def get_branch_stock(branch_id: int):
    try:
        records = branch_service.get_branch_stock(branch_id, get_clients().stock)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Failed to fetch stock for branch %s", branch_id)
        return jsonify({"error": "Failed to fetch branch stock"}), 500

    return jsonify({"branch_id": branch_id, "items": records, "count": len(records)}), 200


@branches_bp.post("/branches/<int:branch_id>/stock-adjust")
@require_auth
@require_capability("ADJUST_STOCK")
def adjust_branch_stock(branch_id: int):
    """
    Apply a signed quantity change to one product's stock at this branch.

    Request body:
    {
        "product_id": int,
        "quantity_change": int (negative for consumption)
    }

    Returns:
        200: updated stock record
        400: invalid input or result would be negative
        404: branch or stock record not found
        409: lost to concurrent writers on every attempt
        500: stock service failure
    """
    data = request.get_json(silent=True) or {}

    try:
        product_id = parse_identifier(data.get("product_id"), "product_id")
        delta = parse_int(data.get("quantity_change"), "quantity_change")
        updated = branch_service.adjust_branch_stock(
            branch_id,
            product_id,
            delta,
            stock=get_clients().stock,
            attempts=current_app.config["STOCK_ADJUST_ATTEMPTS"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409
    except ServiceUnavailable:
        current_app.logger.exception("Stock service failed while adjusting branch %s", branch_id)
        return jsonify({"error": "Failed to adjust stock"}), 500
    except Exception:
        current_app.logger.exception("Failed to adjust stock for branch %s", branch_id)
        return jsonify({"error": "Failed to adjust stock"}), 500

    return jsonify({"message": "Stock adjusted successfully", "data": updated}), 200


@branches_bp.post("/branches/<int:branch_id>/restock")
@require_auth
@require_capability("REQUEST_RESTOCK")
def create_restock_request(branch_id: int):
    data = request.get_json(silent=True) or {}

    try:
        product_id = parse_identifier(data.get("product_id"), "product_id")
        quantity = parse_int(data.get("quantity"), "quantity")
        enforce_rules_quantity({"quantity": quantity})
        req = restock_service.create_restock_request(
            branch_id=branch_id,
            product_id=product_id,
            quantity=quantity,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create restock request")
        return jsonify({"error": "Failed to create restock request"}), 500

    return jsonify({"message": "Restock request created", "data": req.to_dict()}), 201


@branches_bp.get("/branches/<int:branch_id>/restock")
@require_auth
@require_capability("VIEW_BRANCHES")
def list_restock_requests(branch_id: int):
    try:
        requests = restock_service.list_restock_requests(branch_id, status=request.args.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"items": [r.to_dict() for r in requests], "count": len(requests)}), 200


def _decide_restock(branch_id: int, restock_id: int, decision: str):
    try:
        req = restock_service.decide_restock_request(
            branch_id=branch_id,
            restock_id=restock_id,
            decision=decision,
            user_id=g.current_user_id,
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RequestStateError as e:
        return jsonify({"error": str(e)}), 409
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to %s restock request %s", decision, restock_id)
        return jsonify({"error": f"Failed to {decision} restock request"}), 500

    message = "Restock request approved" if decision == "approve" else "Restock request rejected"
    return jsonify({"message": message, "data": req.to_dict()}), 200


@branches_bp.post("/branches/<int:branch_id>/restock/<int:restock_id>/approve")
@require_auth
@require_capability("DECIDE_RESTOCK")
def approve_restock_request(branch_id: int, restock_id: int):
    return _decide_restock(branch_id, restock_id, "approve")


@branches_bp.post("/branches/<int:branch_id>/restock/<int:restock_id>/reject")
@require_auth
@require_capability("DECIDE_RESTOCK")
def reject_restock_request(branch_id: int, restock_id: int):
    return _decide_restock(branch_id, restock_id, "reject")


@branches_bp.post("/stock-requests")
@require_auth
@require_capability("REQUEST_RESTOCK")
def create_stock_request():
    """
    Place a warehouse -> branch stock request with the stock service.

    Request body:
    {
        "branch_id": int,
        "product_id": int,
        "quantity": int,
        "warehouse_id": int (optional, defaults to the branch's warehouse)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        branch_id = parse_identifier(data.get("branch_id"), "branch_id")
        product_id = parse_identifier(data.get("product_id"), "product_id")
        warehouse_id = None
        if data.get("warehouse_id") is not None:
            warehouse_id = parse_identifier(data.get("warehouse_id"), "warehouse_id")
        quantity = parse_int(data.get("quantity"), "quantity")
        enforce_rules_quantity({"quantity": quantity})
        placed = branch_service.place_stock_request(
            branch_id=branch_id,
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity=quantity,
            stock=get_clients().stock,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Stock service failed while placing a stock request")
        return jsonify({"error": "Failed to place stock request"}), 500

    return jsonify({"message": "Stock request placed", "data": placed}), 201


@branches_bp.get("/branches/<branch_id>/products")
@require_auth
@require_capability("VIEW_BRANCHES")
def get_branch_products(branch_id: str):
    try:
        branch_id = parse_identifier(branch_id, "branch_id")
        products = branch_service.get_branch_products(branch_id, get_clients().products)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable:
        current_app.logger.exception("Product service unreachable for branch %s", branch_id)
        return jsonify({"error": "Failed to fetch branch products"}), 500

    return jsonify({"items": products, "count": len(products)}), 200


@branches_bp.post("/branches/<branch_id>/products")
@require_auth
@require_capability("ASSIGN_PRODUCTS")
def assign_product_to_branch(branch_id: str):
    data = request.get_json(silent=True) or {}

    try:
        branch_id = parse_identifier(branch_id, "branch_id")
        product_id = parse_identifier(data.get("product_id"), "product_id")
        branch, product = branch_service.assign_product(branch_id, product_id, get_clients().products)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409
    except ServiceUnavailable:
        current_app.logger.exception("Product service failed while assigning to branch %s", branch_id)
        return jsonify({"error": "Failed to assign product to branch"}), 500

    return jsonify({
        "message": "Product assigned successfully",
        "branch": branch.to_dict(),
        "product": product,
    }), 200


@branches_bp.delete("/branches/<branch_id>/products/<product_id>")
@require_auth
@require_capability("ASSIGN_PRODUCTS")
def remove_product_from_branch(branch_id: str, product_id: str):
    try:
        branch_id = parse_identifier(branch_id, "branch_id")
        product_id = parse_identifier(product_id, "product_id")
        branch = branch_service.remove_product(branch_id, product_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrentUpdateError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"message": "Product removed successfully", "branch": branch.to_dict()}), 200
