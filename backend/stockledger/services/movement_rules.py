# Overview: Classification and sign rules shared by live hooks, rebuild, and replay.

from __future__ import annotations

from typing import Iterable

from stockledger.events import LedgerEvent, OrderReduced, OrderRestored, StockSet
from stockledger.models import (
    MOVEMENT_RESTORE,
    MOVEMENT_SALE,
    MOVEMENT_SET_STOCK,
    StockMovement,
)
from stockledger.platform import Order
from stockledger.time_utils import utcnow


class LedgerError(Exception):
    """Raised when a movement row would break the ledger sign rules."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def aggregate_quantities(pairs: Iterable[tuple[int, int]]) -> dict[int, int]:
    """
    Sum (product_id, quantity) pairs per product.

    Products whose quantities cancel out are dropped; an order that nets to
    zero for a product does not move its stock.
    """
    totals: dict[int, int] = {}
    for product_id, quantity in pairs:
        if not product_id:
            continue
        totals[product_id] = totals.get(product_id, 0) + int(quantity or 0)
    return {pid: qty for pid, qty in totals.items() if qty != 0}


def order_quantities(order: Order) -> dict[int, int]:
    """Per-product totals for a platform order, variations rolled up to their parent."""
    return aggregate_quantities((line.ledger_product_id, line.quantity) for line in order.line_items)


def classify_status(status: str | None, paid_statuses, restore_statuses) -> str | None:
    # Restore wins when a status is configured in both sets
    status = (status or "").lower()
    if status in restore_statuses:
        return MOVEMENT_RESTORE
    if status in paid_statuses:
        return MOVEMENT_SALE
    return None


def signed_quantity(kind: str, quantity: int) -> int:
    if kind == MOVEMENT_SALE:
        return -abs(quantity)
    if kind == MOVEMENT_RESTORE:
        return abs(quantity)
    return 0


def build_order_movements(
    *,
    order_id: int,
    kind: str,
    quantities: dict[int, int],
    created_at,
    source: str,
    customer_label: str | None = None,
    only_product_id: int | None = None,
) -> list[StockMovement]:
    movements = []
    for product_id in sorted(quantities):
        if only_product_id is not None and product_id != only_product_id:
            continue
        movements.append(
            StockMovement(
                product_id=product_id,
                order_id=order_id,
                kind=kind,
                quantity=signed_quantity(kind, quantities[product_id]),
                qoh_after=None,
                customer_label=customer_label,
                source=source,
                created_at=created_at,
            )
        )
    return movements


def stock_set_movement(event: StockSet, source: str) -> StockMovement:
    return StockMovement(
        product_id=event.product_id,
        order_id=None,
        kind=MOVEMENT_SET_STOCK,
        quantity=0,
        qoh_after=event.quantity,
        customer_label=None,
        source=source,
        created_at=event.occurred_at or utcnow(),
    )


def movements_for_event(
    event: LedgerEvent,
    source: str,
    *,
    paid_statuses,
    restore_statuses,
    only_product_id: int | None = None,
) -> list[StockMovement]:
    """
    Movement rows a raw event stands for (unsaved).

    Order events are classified by the order status they carry, exactly as a
    rebuild classifies the order; the event kind only says which hook fired.
    An order in neither status set moves no stock.
    """
    if isinstance(event, StockSet):
        if only_product_id is not None and event.product_id != only_product_id:
            return []
        return [stock_set_movement(event, source)]

    if isinstance(event, (OrderReduced, OrderRestored)):
        kind = classify_status(event.status, paid_statuses, restore_statuses)
        if kind is None:
            return []
        return build_order_movements(
            order_id=event.order_id,
            kind=kind,
            quantities=aggregate_quantities((line.product_id, line.quantity) for line in event.lines),
            created_at=event.order_created_at,
            source=source,
            customer_label=event.customer_label,
            only_product_id=only_product_id,
        )

    raise LedgerError("Unsupported event", details={"type": type(event).__name__})


def validate_movement(movement: StockMovement) -> None:
    kind = movement.kind
    quantity = movement.quantity if movement.quantity is not None else 0
    if kind == MOVEMENT_SALE and quantity >= 0:
        raise LedgerError("SALE movements must have a negative quantity", details={"quantity": quantity})
    if kind == MOVEMENT_RESTORE and quantity < 0:
        raise LedgerError("RESTORE movements must not have a negative quantity", details={"quantity": quantity})
    if kind == MOVEMENT_SET_STOCK:
        if quantity != 0:
            raise LedgerError("SET_STOCK movements must have a zero quantity", details={"quantity": quantity})
        if movement.qoh_after is None:
            raise LedgerError("SET_STOCK movements require qoh_after")
    if kind not in (MOVEMENT_SALE, MOVEMENT_RESTORE, MOVEMENT_SET_STOCK):
        raise LedgerError("Unknown movement kind", details={"kind": kind})
    if not movement.product_id:
        raise LedgerError("product_id is required")
