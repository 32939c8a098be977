# backend/stockmesh/services/restock_service.py
"""
Restock requests opened by a branch and decided on the warehouse side.

LIFECYCLE:
1. pending: created by the branch
2. approved / rejected: terminal, decided once

Deciding never moves stock. Stock moves through branch_service.adjust_branch_stock.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import RestockRequest
from ..models.inventory import REQUEST_STATUSES
from ..validation import NotFoundError, ValidationError
from .branch_service import get_branch
from .concurrency import lock_for_update, run_with_retry
from .workflow import apply_decision


def create_restock_request(*, branch_id: int, product_id: int, quantity: int) -> RestockRequest:
    get_branch(branch_id)

    req = RestockRequest(branch_id=branch_id, product_id=product_id, quantity=quantity)
    db.session.add(req)
    db.session.commit()

    current_app.logger.info("Restock request %s opened for branch %s", req.id, branch_id)
    return req


def list_restock_requests(branch_id: int, status: str | None = None) -> list[RestockRequest]:
    get_branch(branch_id)

    query = db.session.query(RestockRequest).filter(RestockRequest.branch_id == branch_id)
    if status is not None:
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(REQUEST_STATUSES))}")
        query = query.filter(RestockRequest.status == status)
    return query.order_by(RestockRequest.id.asc()).all()


def get_restock_request(branch_id: int, restock_id: int) -> RestockRequest:
    req = db.session.query(RestockRequest).filter_by(id=restock_id, branch_id=branch_id).first()
    if not req:
        raise NotFoundError("Restock request not found")
    return req


def decide_restock_request(*, branch_id: int, restock_id: int, decision: str, user_id: int | None) -> RestockRequest:
    """
    Approve or reject a restock request of the given branch.

    Raises:
        NotFoundError: no such request under this branch
        RequestStateError: already decided (unless allowed by config)
    """
    def _op():
        req = lock_for_update(
            db.session.query(RestockRequest).filter_by(id=restock_id, branch_id=branch_id)
        ).first()
        if not req:
            raise NotFoundError("Restock request not found")

        apply_decision(req, decision)
        req.decided_by_user_id = user_id
        db.session.commit()
        return req

    req = run_with_retry(_op)
    current_app.logger.info("Restock request %s %s by user %s", req.id, req.status, user_id)
    return req
