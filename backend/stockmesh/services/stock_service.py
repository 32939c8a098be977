# backend/stockmesh/services/stock_service.py
"""
Stock service: quantity on hand per (location, product) and stock requests.

set_quantity(expected_version=...) is a compare-and-swap: the write only lands
while the record is still at that version, otherwise the caller gets 409 and
re-reads.

INVARIANTS:
- quantity is never persisted below zero
- version_id increases by one on every write
- listings are ordered by id, so "first match" is stable
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import StockRecord, StockRequest
from ..models.inventory import REQUEST_STATUSES
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .workflow import apply_decision


class StockVersionConflict(Exception):
    """Raised when a conditional write targets an outdated version."""
    pass


def create_stock_record(
    *,
    product_id: int,
    quantity: int,
    branch_id: int | None = None,
    warehouse_id: int | None = None,
) -> StockRecord:
    """
    Create the stock record for one (location, product) pair.

    Raises:
        ValidationError: no location, two locations, or negative quantity
        ConflictError: a record for the pair already exists
    """
    if (branch_id is None) == (warehouse_id is None):
        raise ValidationError("Exactly one of branch_id or warehouse_id is required")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")

    existing = db.session.query(StockRecord).filter_by(
        branch_id=branch_id,
        warehouse_id=warehouse_id,
        product_id=product_id,
    ).first()
    if existing:
        raise ConflictError("Stock record already exists for this product at this location")

    record = StockRecord(
        branch_id=branch_id,
        warehouse_id=warehouse_id,
        product_id=product_id,
        quantity=quantity,
    )
    db.session.add(record)
    db.session.commit()
    return record


def get_stock_record(stock_id: int) -> StockRecord:
    record = db.session.query(StockRecord).filter_by(id=stock_id).first()
    if not record:
        raise NotFoundError("Stock record not found")
    return record


def list_for_branch(branch_id: int, product_id: int | None = None) -> list[StockRecord]:
    query = db.session.query(StockRecord).filter(StockRecord.branch_id == branch_id)
    if product_id is not None:
        query = query.filter(StockRecord.product_id == product_id)
    return query.order_by(StockRecord.id.asc()).all()


def list_for_warehouse(warehouse_id: int) -> list[StockRecord]:
    return (
        db.session.query(StockRecord)
        .filter(StockRecord.warehouse_id == warehouse_id)
        .order_by(StockRecord.id.asc())
        .all()
    )


def set_quantity(stock_id: int, quantity: int, *, expected_version: int | None = None) -> StockRecord:
    """
    Overwrite the quantity of a stock record.

    Args:
        stock_id: record id
        quantity: new absolute quantity (>= 0)
        expected_version: when given, the write only lands if the record is
            still at this version_id

    Raises:
        ValidationError: negative quantity
        NotFoundError: unknown record
        StockVersionConflict: record moved past expected_version
    """
    if quantity < 0:
        raise ValidationError("Resulting quantity cannot be negative")

    if expected_version is None:
        def _op():
            record = lock_for_update(db.session.query(StockRecord).filter_by(id=stock_id)).first()
            if not record:
                raise NotFoundError("Stock record not found")
            record.quantity = quantity
            db.session.commit()
            return record

        return run_with_retry(_op)

    result = db.session.execute(
        update(StockRecord)
        .where(StockRecord.id == stock_id, StockRecord.version_id == expected_version)
        .values(quantity=quantity, version_id=StockRecord.version_id + 1, updated_at=db.func.now())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()

    if result.rowcount == 0:
        record = get_stock_record(stock_id)
        raise StockVersionConflict(
            f"Stock record {stock_id} is at version {record.version_id}, not {expected_version}"
        )

    db.session.expire_all()
    record = get_stock_record(stock_id)
    current_app.logger.info(
        "Stock record %s set to %s (version %s)", record.id, record.quantity, record.version_id
    )
    return record


def create_stock_request(*, warehouse_id: int, branch_id: int, product_id: int, quantity: int) -> StockRequest:
    req = StockRequest(
        warehouse_id=warehouse_id,
        branch_id=branch_id,
        product_id=product_id,
        quantity=quantity,
    )
    db.session.add(req)
    db.session.commit()
    return req


def list_stock_requests(
    *,
    warehouse_id: int | None = None,
    branch_id: int | None = None,
    status: str | None = None,
) -> list[StockRequest]:
    query = db.session.query(StockRequest)
    if warehouse_id is not None:
        query = query.filter(StockRequest.warehouse_id == warehouse_id)
    if branch_id is not None:
        query = query.filter(StockRequest.branch_id == branch_id)
    if status is not None:
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(REQUEST_STATUSES))}")
        query = query.filter(StockRequest.status == status)
    return query.order_by(StockRequest.id.asc()).all()


def decide_stock_request(request_id: int, decision: str) -> StockRequest:
    """
    Approve or reject a stock request.

    Raises:
        NotFoundError: unknown request
        RequestStateError: request already decided (unless allowed by config)
    """
    def _op():
        req = lock_for_update(db.session.query(StockRequest).filter_by(id=request_id)).first()
        if not req:
            raise NotFoundError("Stock request not found")
        apply_decision(req, decision)
        db.session.commit()
        return req

    req = run_with_retry(_op)
    current_app.logger.info("Stock request %s %s", req.id, req.status)
    return req
