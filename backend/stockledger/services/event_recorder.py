# Overview: Service-layer operations for the raw stock event log; encapsulates
# the live hook write path (with the movement dual-write) and log replay.

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import (
    EVENT_KINDS,
    ProductStockState,
    SOURCE_HOOK,
    SOURCE_REPLAY,
    StockEvent,
)
from stockledger.events import (
    LedgerEvent,
    LineItem,
    MalformedEventError,
    OrderReduced,
    OrderRestored,
    StockSet,
    dumps,
    parse_event,
)
from stockledger.platform import Order
from stockledger.time_utils import utcnow
from . import movement_store
from .concurrency import run_with_retry
from .movement_rules import movements_for_event


REPLAY_PAGE_SIZE = 500


def _product_ids(event: LedgerEvent) -> list[int]:
    if isinstance(event, StockSet):
        return [event.product_id]
    return sorted({line.product_id for line in event.lines})


def _status_rules() -> dict[str, Any]:
    return {
        "paid_statuses": current_app.config["LEDGER_PAID_STATUSES"],
        "restore_statuses": current_app.config["LEDGER_RESTORE_STATUSES"],
    }


def _product_filter(product_id: int):
    return StockEvent.product_ids.like(f"%,{int(product_id)},%")


def _with_previous_quantity(event: StockSet) -> StockSet:
    """Fill previous_quantity from the state cache and move the cache forward."""
    if not movement_store.table_exists(ProductStockState.__table__):
        return event

    state = db.session.get(ProductStockState, event.product_id)
    previous = event.previous_quantity
    if state is None:
        state = ProductStockState(product_id=event.product_id)
        db.session.add(state)
    elif previous is None:
        previous = state.last_quantity
    state.last_quantity = event.quantity
    state.updated_at = utcnow()
    return replace(event, previous_quantity=previous)


def _record(event: LedgerEvent) -> StockEvent | None:
    if not movement_store.table_exists(StockEvent.__table__):
        current_app.logger.warning("Event log table missing; dropped %s event", event.kind)
        return None

    if isinstance(event, StockSet):
        if event.occurred_at is None:
            event = replace(event, occurred_at=utcnow())
        event = _with_previous_quantity(event)

    product_ids = _product_ids(event)
    row = StockEvent(
        kind=event.kind,
        payload=dumps(event),
        order_id=getattr(event, "order_id", None),
        product_ids=f",{','.join(str(p) for p in product_ids)}," if product_ids else None,
        occurred_at=utcnow(),
    )
    db.session.add(row)

    if current_app.config.get("LEDGER_PERSIST_MOVEMENTS", True):
        movement_store.insert_many(movements_for_event(event, SOURCE_HOOK, **_status_rules()))

    db.session.commit()
    return row


def record(event: LedgerEvent) -> StockEvent | None:
    """
    Append one raw event (and, when enabled, its movement rows).

    Never raises: the host action that triggered the hook has already
    happened, so a failure here is logged and the event is lost.
    """
    try:
        return run_with_retry(lambda: _record(event))
    except Exception:  # noqa: BLE001
        db.session.rollback()
        current_app.logger.warning(
            "Failed to record %s event (order_id=%s)",
            event.kind,
            getattr(event, "order_id", None),
            exc_info=True,
        )
        return None


def _order_event(cls, order: Order):
    return cls(
        order_id=order.id,
        status=order.status,
        order_created_at=order.created_at,
        lines=tuple(
            LineItem(product_id=line.ledger_product_id, quantity=line.quantity, sku=line.sku)
            for line in order.line_items
        ),
        customer_label=order.customer_label,
    )


def _is_primary(order: Order) -> bool:
    primary = current_app.config.get("LEDGER_PRIMARY_ORDER_TYPE", "shop_order")
    if order.type != primary:
        current_app.logger.info("Ignoring %s record %s for stock hooks", order.type, order.id)
        return False
    return True


def record_order_reduced(order: Order) -> StockEvent | None:
    if not _is_primary(order):
        return None
    return record(_order_event(OrderReduced, order))


def record_order_restored(order: Order) -> StockEvent | None:
    if not _is_primary(order):
        return None
    return record(_order_event(OrderRestored, order))


def record_stock_set(
    product_id: int,
    quantity: int,
    source: str = "manual",
    occurred_at: datetime | None = None,
) -> StockEvent | None:
    return record(
        StockSet(product_id=product_id, quantity=quantity, source=source, occurred_at=occurred_at)
    )


def list_events(
    *,
    product_id: int | None = None,
    kind: str | None = None,
    limit: int = 100,
) -> list[StockEvent]:
    if not movement_store.table_exists(StockEvent.__table__):
        return []
    q = db.session.query(StockEvent)
    if product_id is not None:
        q = q.filter(_product_filter(product_id))
    if kind is not None:
        q = q.filter(StockEvent.kind == kind)
    return q.order_by(StockEvent.id.desc()).limit(max(1, int(limit))).all()


def replay_event_log(
    *,
    product_id: int | None = None,
    since: datetime | None = None,
    kinds: Iterable[str] | None = None,
    clear: bool = True,
    source: str = SOURCE_REPLAY,
) -> dict[str, Any]:
    """
    Re-derive movement rows from the raw event log, oldest event first.

    With clear=True the movement window (product and/or created_at >= since)
    is deleted first, whatever wrote it. Only movements whose business time
    falls inside the window are re-created. Malformed events are skipped and
    per-event failures rolled back to their savepoint; both are counted.
    """
    counts = {"deleted": 0, "examined": 0, "written": 0, "skipped": 0, "failed": 0}
    if not movement_store.table_exists(StockEvent.__table__) or not movement_store.table_exists():
        current_app.logger.warning("Ledger tables missing; replay skipped")
        return counts

    kinds = tuple(kinds) if kinds is not None else EVENT_KINDS

    if clear:
        counts["deleted"] = movement_store.delete_window(product_id=product_id, since=since)
        db.session.commit()

    rules = _status_rules()
    cursor = 0
    while True:
        q = db.session.query(StockEvent).filter(StockEvent.id > cursor, StockEvent.kind.in_(kinds))
        if product_id is not None:
            q = q.filter(_product_filter(product_id))
        if since is not None:
            q = q.filter(StockEvent.occurred_at >= since)
        page = q.order_by(StockEvent.id.asc()).limit(REPLAY_PAGE_SIZE).all()
        if not page:
            break

        for row in page:
            counts["examined"] += 1
            nested = db.session.begin_nested()
            try:
                event = parse_event(row.kind, row.payload)
                movements = [
                    m for m in movements_for_event(event, source, only_product_id=product_id, **rules)
                    if since is None or m.created_at >= since
                ]
                counts["written"] += movement_store.insert_many(movements)
                nested.commit()
            except MalformedEventError as exc:
                nested.rollback()
                counts["skipped"] += 1
                current_app.logger.warning("Skipping malformed event %s: %s", row.id, exc)
            except Exception:  # noqa: BLE001
                nested.rollback()
                counts["failed"] += 1
                current_app.logger.warning("Failed to replay event %s", row.id, exc_info=True)

        cursor = page[-1].id
        db.session.commit()

    return counts
