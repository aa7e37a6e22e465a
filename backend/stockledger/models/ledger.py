from __future__ import annotations

import json

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


MOVEMENT_SALE = "SALE"
MOVEMENT_RESTORE = "RESTORE"
MOVEMENT_SET_STOCK = "SET_STOCK"
MOVEMENT_KINDS = (MOVEMENT_SALE, MOVEMENT_RESTORE, MOVEMENT_SET_STOCK)

EVENT_STOCK_SET = "STOCK_SET"
EVENT_ORDER_REDUCED = "ORDER_REDUCED"
EVENT_ORDER_RESTORED = "ORDER_RESTORED"
EVENT_KINDS = (EVENT_STOCK_SET, EVENT_ORDER_REDUCED, EVENT_ORDER_RESTORED)

SOURCE_HOOK = "hook"
SOURCE_REBUILD = "rebuild"
SOURCE_REPLAY = "replay"

JOB_RUNNING = "RUNNING"
JOB_DONE = "DONE"
JOB_ABORTED = "ABORTED"

SCOPE_ALL = "ALL"
SCOPE_PRODUCT = "PRODUCT"


class StockEvent(db.Model):
    """
    Raw, append-only log of stock-affecting actions reported by the host.

    One row per customer action: an order event carries all of its line items
    in the payload. Rows are only removed by a purge.
    """
    __tablename__ = "stock_events"
    __table_args__ = (
        db.Index("ix_stock_events_kind_occurred", "kind", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, index=True)

    # JSON document; shape depends on kind (see stockledger.events)
    payload = db.Column(db.Text, nullable=False)

    # Denormalized lookups; product_ids is ",12,40," for LIKE filtering
    order_id = db.Column(db.Integer, nullable=True, index=True)
    product_ids = db.Column(db.Text, nullable=True)

    # Host-supplied, advisory
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<StockEvent id={self.id} kind={self.kind} order_id={self.order_id}>"

    def product_id_list(self) -> list[int]:
        return [int(p) for p in (self.product_ids or "").split(",") if p]

    def payload_dict(self) -> dict:
        try:
            data = json.loads(self.payload or "{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "payload": self.payload_dict(),
            "order_id": self.order_id,
            "product_ids": self.product_id_list(),
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    """
    Normalized ledger row: one discrete stock change (or checkpoint) for one product.

    Sign convention:
    - SALE: quantity < 0
    - RESTORE: quantity >= 0
    - SET_STOCK: quantity == 0, qoh_after holds the absolute stock set

    created_at is business time (order creation time for order-derived rows),
    recorded_at is when the row was written. There is no unique constraint on
    (order_id, product_id, kind): overlapping hooks and rebuilds can duplicate rows.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_product_kind_created", "product_id", "kind", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False)
    order_id = db.Column(db.Integer, nullable=True, index=True)

    kind = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    qoh_after = db.Column(db.Integer, nullable=True)

    customer_label = db.Column(db.String(255), nullable=True)
    source = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product_id={self.product_id} "
            f"kind={self.kind} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "order_id": self.order_id,
            "kind": self.kind,
            "quantity": self.quantity,
            "qoh_after": self.qoh_after,
            "customer_label": self.customer_label,
            "source": self.source,
            "created_at": to_utc_z(self.created_at),
            "recorded_at": to_utc_z(self.recorded_at),
        }


class ProductStockState(db.Model):
    """Last stock quantity the host reported for a product (via STOCK_SET)."""
    __tablename__ = "product_stock_states"

    product_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    last_quantity = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "last_quantity": self.last_quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class RebuildJob(db.Model):
    """
    Resumable re-derivation of the movement ledger from the order history.

    LIFECYCLE:
    1. RUNNING: created by start, advanced in place by each step
    2. DONE: no candidate orders left, or processed >= total
    3. ABORTED: stopped by abort, or superseded by a newer start

    Steps are cursor-based on order id. version_id makes two concurrent steps
    on the same job collide instead of both writing the same order range.
    """
    __tablename__ = "rebuild_jobs"
    __table_args__ = (
        db.Index("ix_rebuild_jobs_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    scope = db.Column(db.String(16), nullable=False, default=SCOPE_ALL)
    product_id = db.Column(db.Integer, nullable=True)
    days = db.Column(db.Integer, nullable=True)
    window_start = db.Column(db.DateTime(timezone=True), nullable=True)

    total = db.Column(db.Integer, nullable=False, default=0)
    processed = db.Column(db.Integer, nullable=False, default=0)
    cursor = db.Column(db.Integer, nullable=False, default=0)
    batch_size = db.Column(db.Integer, nullable=False)

    movements_written = db.Column(db.Integer, nullable=False, default=0)
    failed_orders = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=JOB_RUNNING)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<RebuildJob id={self.id} scope={self.scope} status={self.status} "
            f"processed={self.processed}/{self.total}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope": self.scope,
            "product_id": self.product_id,
            "days": self.days,
            "window_start": to_utc_z(self.window_start),
            "total": self.total,
            "processed": self.processed,
            "cursor": self.cursor,
            "batch_size": self.batch_size,
            "movements_written": self.movements_written,
            "failed_orders": self.failed_orders,
            "status": self.status,
            "started_at": to_utc_z(self.started_at),
            "finished_at": to_utc_z(self.finished_at),
            "version_id": self.version_id,
        }
