# Overview: Persistence for the normalized movement ledger (stock_movements).
#
# Writes are flushed, never committed: the caller owns the transaction (a
# rebuild step commits once per batch, a hook once per event).

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from flask import current_app
from sqlalchemy import inspect as sa_inspect

from ..extensions import db
from ..models import StockMovement
from .movement_rules import validate_movement


def table_exists(table=StockMovement.__table__) -> bool:
    return sa_inspect(db.session.connection()).has_table(table.name)


def insert(movement: StockMovement) -> StockMovement | None:
    """
    Add one movement row after checking the sign rules.

    Returns None (and logs) when the ledger table has not been provisioned.
    """
    validate_movement(movement)
    if not table_exists():
        current_app.logger.warning(
            "Ledger table missing; dropped %s movement for product %s",
            movement.kind,
            movement.product_id,
        )
        return None
    db.session.add(movement)
    db.session.flush()
    return movement


def insert_many(movements: Iterable[StockMovement]) -> int:
    movements = list(movements)
    if not movements:
        return 0
    for movement in movements:
        validate_movement(movement)
    if not table_exists():
        current_app.logger.warning("Ledger table missing; dropped %d movements", len(movements))
        return 0
    db.session.add_all(movements)
    db.session.flush()
    return len(movements)


def query(product_id: int, limit: int = 100, since: datetime | None = None) -> list[StockMovement]:
    """Movements for one product, newest first (created_at desc, then id desc)."""
    if not table_exists():
        return []
    q = db.session.query(StockMovement).filter(StockMovement.product_id == product_id)
    if since is not None:
        q = q.filter(StockMovement.created_at >= since)
    return (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(max(1, int(limit)))
        .all()
    )


def truncate() -> int:
    if not table_exists():
        return 0
    deleted = db.session.query(StockMovement).delete(synchronize_session=False)
    db.session.flush()
    return deleted


def delete_window(product_id: int | None = None, since: datetime | None = None) -> int:
    """Remove the rows a partial rebuild or replay is about to re-derive."""
    if not table_exists():
        return 0
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if since is not None:
        q = q.filter(StockMovement.created_at >= since)
    deleted = q.delete(synchronize_session=False)
    db.session.flush()
    return deleted
