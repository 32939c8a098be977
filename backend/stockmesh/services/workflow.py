# Overview: pending -> approved | rejected transitions shared by restock and stock requests.

from __future__ import annotations

from flask import current_app

from ..models.inventory import (
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    TERMINAL_REQUEST_STATUSES,
)
from ..time_utils import utcnow

DECISIONS = {
    "approve": REQUEST_STATUS_APPROVED,
    "reject": REQUEST_STATUS_REJECTED,
}


class RequestStateError(Exception):
    """Raised when a decision is applied to a request that is no longer pending."""
    pass


def terminal_transitions_allowed() -> bool:
    return bool(current_app.config.get("RESTOCK_ALLOW_TERMINAL_TRANSITIONS", False))


def apply_decision(req, decision: str) -> None:
    """
    Move req to the status named by decision ("approve" / "reject").

    With RESTOCK_ALLOW_TERMINAL_TRANSITIONS off (the default) only pending
    requests may be decided. With it on, a decided request may be decided
    again, which is what the older services did silently.
    """
    target = DECISIONS[decision]

    if req.status in TERMINAL_REQUEST_STATUSES and not terminal_transitions_allowed():
        raise RequestStateError(f"Cannot {decision} request in {req.status} status")

    if req.status not in TERMINAL_REQUEST_STATUSES and req.status != REQUEST_STATUS_PENDING:
        raise RequestStateError(f"Cannot {decision} request in {req.status} status")

    req.status = target
    req.decided_at = utcnow()
