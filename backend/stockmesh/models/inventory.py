from __future__ import annotations

from ..extensions import db
from stockmesh.time_utils import to_utc_z


REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"
REQUEST_STATUSES = {REQUEST_STATUS_PENDING, REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED}
TERMINAL_REQUEST_STATUSES = {REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED}


class RestockRequest(db.Model):
    """
    Branch-initiated ask for more of one product.

    LIFECYCLE:
    pending -> approved | rejected (both terminal)

    Deciding a request never touches stock; adjustments are separate calls.
    """
    __tablename__ = "restock_requests"
    __table_args__ = (
        db.Index("ix_restock_requests_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING)

    decided_by_user_id = db.Column(db.Integer, nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("restock_requests", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<RestockRequest id={self.id} branch_id={self.branch_id} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "status": self.status,
            "decided_by_user_id": self.decided_by_user_id,
            "decided_at": to_utc_z(self.decided_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockRecord(db.Model):
    """
    Quantity on hand for one product at one location.

    Exactly one of branch_id / warehouse_id is set. Quantity is never stored
    negative. Writers pass the version_id they read; the conditional UPDATE in
    stock_service refuses the write when someone else got there first.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.Index("ix_stock_records_branch_product", "branch_id", "product_id"),
        db.Index("ix_stock_records_warehouse_product", "warehouse_id", "product_id"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_records_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, nullable=True)
    warehouse_id = db.Column(db.Integer, nullable=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockRecord id={self.id} branch_id={self.branch_id} "
            f"warehouse_id={self.warehouse_id} product_id={self.product_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockRequest(db.Model):
    """
    Branch ask for stock from its warehouse, decided on the warehouse side.

    Same lifecycle as RestockRequest.
    """
    __tablename__ = "stock_requests"
    __table_args__ = (
        db.Index("ix_stock_requests_warehouse_status", "warehouse_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, nullable=False, index=True)
    branch_id = db.Column(db.Integer, nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING)

    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockRequest id={self.id} warehouse_id={self.warehouse_id} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "status": self.status,
            "decided_at": to_utc_z(self.decided_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
