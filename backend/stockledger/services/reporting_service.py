# Overview: Service-layer operations for ledger reporting; daily sales series,
# rolling sales totals, and the per-product movement history.

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import MOVEMENT_RESTORE, MOVEMENT_SALE, StockMovement
from stockledger.platform import get_platform
from stockledger.time_utils import get_zone, local_date, utcnow, window_start_for_days
from . import movement_store
from .reconstruction import reconstruct


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _zone():
    return get_zone(current_app.config.get("LEDGER_TIMEZONE"))


def _check_days(days: int) -> int:
    days = int(days)
    if days < 1:
        raise ReportError("days must be a positive integer", details={"days": days})
    return days


def _sum_quantity(product_id: int, kind: str, since: datetime | None = None) -> int:
    if not movement_store.table_exists():
        return 0
    q = db.session.query(func.coalesce(func.sum(func.abs(StockMovement.quantity)), 0)).filter(
        StockMovement.product_id == product_id,
        StockMovement.kind == kind,
    )
    if since is not None:
        q = q.filter(StockMovement.created_at >= since)
    return int(q.scalar() or 0)


def daily_series(
    product_id: int,
    days: int,
    now: datetime | None = None,
) -> tuple[list[date], list[int]]:
    """
    Units sold per local calendar day, earliest to latest, ending today.

    Always exactly `days` entries; days without sales are 0. Only SALE rows
    count.
    """
    days = _check_days(days)
    zone = _zone()
    now = now or utcnow()
    today = local_date(now, zone)
    labels = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    buckets = {label: 0 for label in labels}

    if movement_store.table_exists():
        start = window_start_for_days(days, zone, now)
        rows = (
            db.session.query(StockMovement.created_at, StockMovement.quantity)
            .filter(
                StockMovement.product_id == product_id,
                StockMovement.kind == MOVEMENT_SALE,
                StockMovement.created_at >= start,
            )
            .all()
        )
        for created_at, quantity in rows:
            day = local_date(created_at, zone)
            if day in buckets:
                buckets[day] += abs(quantity or 0)

    return labels, [buckets[label] for label in labels]


def rolling_sales(product_id: int, days: int, now: datetime | None = None) -> int:
    days = _check_days(days)
    return _sum_quantity(product_id, MOVEMENT_SALE, window_start_for_days(days, _zone(), now))


def movement_history(product_id: int, limit: int = 100, now: datetime | None = None) -> dict[str, Any]:
    rows = movement_store.query(product_id, limit=limit)
    current_stock = get_platform().current_stock(product_id)
    return {
        "product_id": product_id,
        "movements": [view.to_dict() for view in reconstruct(rows, current_stock)],
        "summary": {
            "current_stock": current_stock,
            "total_sales": _sum_quantity(product_id, MOVEMENT_SALE),
            "total_restored": _sum_quantity(product_id, MOVEMENT_RESTORE),
            "sales_7d": rolling_sales(product_id, 7, now),
            "sales_30d": rolling_sales(product_id, 30, now),
            "sales_90d": rolling_sales(product_id, 90, now),
        },
    }
