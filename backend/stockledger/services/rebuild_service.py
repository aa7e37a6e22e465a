# Overview: Service-layer operations for ledger rebuilds; a resumable job that
# re-derives movement rows from the platform order history in short steps.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import (
    EVENT_STOCK_SET,
    JOB_ABORTED,
    JOB_DONE,
    JOB_RUNNING,
    RebuildJob,
    SCOPE_ALL,
    SCOPE_PRODUCT,
    SOURCE_REBUILD,
    StockMovement,
)
from stockledger.platform import get_platform
from stockledger.time_utils import get_zone, utcnow, window_start_for_days
from . import movement_store
from .concurrency import commit_or_conflict
from .event_recorder import replay_event_log
from .movement_rules import build_order_movements, classify_status, order_quantities


class RebuildError(Exception):
    """Raised for invalid rebuild requests."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RebuildNotFoundError(RebuildError):
    """Raised when the requested rebuild job does not exist."""


class RebuildConflictError(RebuildError):
    """Raised when another request advanced the same job first; safe to retry."""


def _conflict(job_id: int):
    return lambda: RebuildConflictError(
        "Rebuild job was modified concurrently; retry",
        details={"job_id": job_id},
    )


def _get_job(job_id: int | None = None) -> RebuildJob | None:
    if job_id is not None:
        job = db.session.get(RebuildJob, job_id)
        if job is None:
            raise RebuildNotFoundError("Rebuild job not found", details={"job_id": job_id})
        return job
    return db.session.query(RebuildJob).order_by(RebuildJob.id.desc()).first()


def _require_job(job_id: int | None) -> RebuildJob:
    job = _get_job(job_id)
    if job is None:
        raise RebuildNotFoundError("No rebuild job has been started")
    return job


def _finish(job: RebuildJob, status: str) -> None:
    job.status = status
    job.finished_at = utcnow()
    current_app.logger.info(
        "Rebuild job %s %s (processed=%s/%s, movements=%s, failed=%s)",
        job.id, status, job.processed, job.total, job.movements_written, job.failed_orders,
    )


def _validate(scope, product_id, days, batch_size) -> None:
    if scope not in (SCOPE_ALL, SCOPE_PRODUCT):
        raise RebuildError("scope must be ALL or PRODUCT", details={"scope": scope})
    if scope == SCOPE_PRODUCT and not product_id:
        raise RebuildError("product_id is required for PRODUCT scope")
    if days is not None and days < 1:
        raise RebuildError("days must be a positive integer", details={"days": days})
    if batch_size < 1:
        raise RebuildError("batch_size must be a positive integer", details={"batch_size": batch_size})
    for table in (RebuildJob.__table__, StockMovement.__table__):
        if not movement_store.table_exists(table):
            raise RebuildError(
                "Ledger tables are not installed; run `flask ledger install`",
                details={"table": table.name},
            )


def start(
    scope: str = SCOPE_ALL,
    product_id: int | None = None,
    days: int | None = None,
    batch_size: int | None = None,
    *,
    now: datetime | None = None,
) -> RebuildJob:
    """
    Clear the target ledger range and create a RUNNING job over it.

    ALL truncates the whole ledger; PRODUCT deletes only that product's rows
    from window_start on. A RUNNING job is aborted first (its progress is
    lost). Manual stock checkpoints in the window are re-derived from the
    raw event log since the order history cannot produce them.
    """
    scope = (scope or SCOPE_ALL).upper()
    batch_size = int(batch_size or current_app.config["LEDGER_REBUILD_BATCH_SIZE"])
    _validate(scope, product_id, days, batch_size)
    if scope == SCOPE_ALL:
        product_id = None

    now = now or utcnow()
    window_start = None
    if days:
        window_start = window_start_for_days(days, get_zone(current_app.config.get("LEDGER_TIMEZONE")), now)

    for running in db.session.query(RebuildJob).filter(RebuildJob.status == JOB_RUNNING).all():
        _finish(running, JOB_ABORTED)

    if scope == SCOPE_ALL:
        movement_store.truncate()
    else:
        movement_store.delete_window(product_id=product_id, since=window_start)

    total = get_platform().count_orders(
        status_filter=None,
        type_filter=current_app.config["LEDGER_PRIMARY_ORDER_TYPE"],
        created_after=window_start,
    )

    job = RebuildJob(
        scope=scope,
        product_id=product_id,
        days=days,
        window_start=window_start,
        total=int(total),
        processed=0,
        cursor=0,
        batch_size=batch_size,
        movements_written=0,
        failed_orders=0,
        status=JOB_RUNNING,
        started_at=now,
    )
    db.session.add(job)
    commit_or_conflict(lambda: RebuildConflictError("A running rebuild job changed while starting; retry"))
    current_app.logger.info(
        "Rebuild job %s started (scope=%s, product_id=%s, days=%s, total=%s)",
        job.id, scope, product_id, days, job.total,
    )

    replayed = replay_event_log(
        product_id=product_id,
        since=window_start,
        kinds=(EVENT_STOCK_SET,),
        clear=False,
        source=SOURCE_REBUILD,
    )
    job.movements_written += replayed["written"]
    if job.total == 0:
        _finish(job, JOB_DONE)
    commit_or_conflict(_conflict(job.id))
    return job


def _rebuild_order(order_id: int, job: RebuildJob, platform, config) -> int:
    order = platform.get_order(order_id)
    if order is None or order.type != config["LEDGER_PRIMARY_ORDER_TYPE"]:
        return 0
    kind = classify_status(order.status, config["LEDGER_PAID_STATUSES"], config["LEDGER_RESTORE_STATUSES"])
    if kind is None:
        return 0
    movements = build_order_movements(
        order_id=order.id,
        kind=kind,
        quantities=order_quantities(order),
        created_at=order.created_at,
        source=SOURCE_REBUILD,
        customer_label=order.customer_label,
        only_product_id=job.product_id if job.scope == SCOPE_PRODUCT else None,
    )
    return movement_store.insert_many(movements)


def step(job_id: int | None = None) -> RebuildJob:
    """
    Process the next batch of orders for a RUNNING job (no-op otherwise).

    Each order is written inside its own savepoint: a failing order is
    rolled back, logged and counted, and the batch carries on.
    """
    job = _require_job(job_id)
    if job.status != JOB_RUNNING:
        return job

    config = current_app.config
    platform = get_platform()
    order_ids = platform.list_orders(
        status_filter=None,
        type_filter=config["LEDGER_PRIMARY_ORDER_TYPE"],
        created_after=job.window_start,
        id_greater_than=job.cursor,
        limit=job.batch_size,
    )

    if not order_ids:
        _finish(job, JOB_DONE)
        commit_or_conflict(_conflict(job.id))
        return job

    written = 0
    failed = 0
    for order_id in order_ids:
        nested = db.session.begin_nested()
        try:
            written += _rebuild_order(order_id, job, platform, config)
            nested.commit()
        except Exception:  # noqa: BLE001
            nested.rollback()
            failed += 1
            current_app.logger.warning(
                "Rebuild job %s failed on order %s", job.id, order_id, exc_info=True
            )

    job.cursor = max(order_ids)
    job.processed += len(order_ids)
    job.movements_written += written
    job.failed_orders += failed
    if job.processed >= job.total:
        _finish(job, JOB_DONE)
    commit_or_conflict(_conflict(job.id))
    return job


def abort(job_id: int | None = None) -> RebuildJob:
    """Stop a RUNNING job; rows it already wrote are kept."""
    job = _require_job(job_id)
    if job.status == JOB_RUNNING:
        _finish(job, JOB_ABORTED)
        commit_or_conflict(_conflict(job.id))
    return job


def status(job_id: int | None = None) -> RebuildJob | None:
    return _get_job(job_id)


def run_to_completion(
    scope: str = SCOPE_ALL,
    product_id: int | None = None,
    days: int | None = None,
    batch_size: int | None = None,
    *,
    on_step=None,
) -> RebuildJob:
    job = start(scope, product_id=product_id, days=days, batch_size=batch_size)
    while job.status == JOB_RUNNING:
        job = step(job.id)
        if on_step is not None:
            on_step(job)
    return job
