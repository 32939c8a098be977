# Overview: Flask API routes for stock records and warehouse-to-branch stock requests.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_capability
from ..services import stock_service
from ..services.concurrency import ConcurrentUpdateError
from ..services.stock_service import StockVersionConflict
from ..services.workflow import RequestStateError
from ..validation import (
    NotFoundError,
    ValidationError,
    enforce_rules_quantity,
    parse_identifier,
    parse_int,
)

stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


def _optional_identifier(data: dict, field: str) -> int | None:
    value = data.get(field)
    if value is None:
        return None
    return parse_identifier(value, field)


def _records_response(records):
    return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200


@stocks_bp.post("")
@require_auth
@require_capability("MANAGE_STOCK")
def create_stock_record():
    """
    Create the stock record for a product at one location.

    Request body:
    {
        "product_id": int,
        "quantity": int (>= 0),
        "branch_id": int | null,
        "warehouse_id": int | null
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        record = stock_service.create_stock_record(
            product_id=parse_identifier(data.get("product_id"), "product_id"),
            quantity=parse_int(data.get("quantity", 0), "quantity"),
            branch_id=_optional_identifier(data, "branch_id"),
            warehouse_id=_optional_identifier(data, "warehouse_id"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create stock record")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(record.to_dict()), 201


@stocks_bp.get("/<int:stock_id>")
@require_auth
@require_capability("VIEW_STOCK")
def get_stock_record(stock_id: int):
    try:
        record = stock_service.get_stock_record(stock_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(record.to_dict()), 200


@stocks_bp.get("/branch/<int:branch_id>")
@require_auth
@require_capability("VIEW_STOCK")
def list_branch_stock(branch_id: int):
    return _records_response(stock_service.list_for_branch(branch_id))


@stocks_bp.get("/branch/<int:branch_id>/product/<int:product_id>")
@require_auth
@require_capability("VIEW_STOCK")
def list_branch_product_stock(branch_id: int, product_id: int):
    return _records_response(stock_service.list_for_branch(branch_id, product_id))


@stocks_bp.get("/warehouse/<int:warehouse_id>")
@require_auth
@require_capability("VIEW_STOCK")
def list_warehouse_stock(warehouse_id: int):
    return _records_response(stock_service.list_for_warehouse(warehouse_id))


@stocks_bp.put("/<int:stock_id>")
@require_auth
@require_capability("ADJUST_STOCK")
def set_stock_quantity(stock_id: int):
    """
    Overwrite the quantity of a stock record.

    Request body:
    {
        "quantity": int (>= 0),
        "version_id": int (optional, makes the write conditional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        quantity = parse_int(data.get("quantity"), "quantity")
        expected_version = None
        if data.get("version_id") is not None:
            expected_version = parse_int(data["version_id"], "version_id")
        record = stock_service.set_quantity(stock_id, quantity, expected_version=expected_version)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (StockVersionConflict, ConcurrentUpdateError) as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(record.to_dict()), 200


@stocks_bp.post("/stock-requests")
@require_auth
@require_capability("REQUEST_RESTOCK")
def create_stock_request():
    data = request.get_json(silent=True) or {}

    try:
        quantity = parse_int(data.get("quantity"), "quantity")
        enforce_rules_quantity({"quantity": quantity})
        req = stock_service.create_stock_request(
            warehouse_id=parse_identifier(data.get("warehouse_id"), "warehouse_id"),
            branch_id=parse_identifier(data.get("branch_id"), "branch_id"),
            product_id=parse_identifier(data.get("product_id"), "product_id"),
            quantity=quantity,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(req.to_dict()), 201


@stocks_bp.get("/stock-requests")
@require_auth
@require_capability("VIEW_STOCK")
def list_stock_requests():
    try:
        requests_ = stock_service.list_stock_requests(
            warehouse_id=_optional_identifier(request.args, "warehouse_id"),
            branch_id=_optional_identifier(request.args, "branch_id"),
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"items": [r.to_dict() for r in requests_], "count": len(requests_)}), 200


def _decide(request_id: int, decision: str):
    try:
        req = stock_service.decide_stock_request(request_id, decision)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (RequestStateError, ConcurrentUpdateError) as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(req.to_dict()), 200


@stocks_bp.post("/stock-requests/<int:request_id>/approve")
@require_auth
@require_capability("DECIDE_RESTOCK")
def approve_stock_request(request_id: int):
    return _decide(request_id, "approve")


@stocks_bp.post("/stock-requests/<int:request_id>/reject")
@require_auth
@require_capability("DECIDE_RESTOCK")
def reject_stock_request(request_id: int):
    return _decide(request_id, "reject")
