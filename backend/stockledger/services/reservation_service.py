# Overview: Service-layer operations for reservations; live per-product totals
# of stock held by in-flight orders, read straight from the platform.

from __future__ import annotations

from typing import Any, Iterable

from flask import current_app

from stockledger.platform import get_platform


SCAN_PAGE_SIZE = 100


def scan_reservations(product_ids: Iterable[int] | None = None) -> dict[str, Any]:
    """
    Sum line quantities of orders in a reserved status, per product.

    Uncached full scan capped at LEDGER_RESERVATION_ORDER_CAP orders. One order
    past the cap is fetched to tell a truncated scan from an exact fit.
    """
    config = current_app.config
    cap = int(config["LEDGER_RESERVATION_ORDER_CAP"])
    wanted = {int(p) for p in product_ids} if product_ids is not None else None
    platform = get_platform()

    order_ids: list[int] = []
    cursor = 0
    while len(order_ids) <= cap:
        page = platform.list_orders(
            status_filter=config["LEDGER_RESERVED_STATUSES"],
            type_filter=config["LEDGER_PRIMARY_ORDER_TYPE"],
            id_greater_than=cursor,
            limit=min(SCAN_PAGE_SIZE, cap + 1 - len(order_ids)),
        )
        if not page:
            break
        order_ids.extend(page)
        cursor = page[-1]

    truncated = len(order_ids) > cap
    order_ids = order_ids[:cap]

    reserved: dict[int, int] = {}
    for order_id in order_ids:
        order = platform.get_order(order_id)
        if order is None:
            continue
        for line in order.line_items:
            product_id = line.ledger_product_id
            if wanted is not None and product_id not in wanted:
                continue
            reserved[product_id] = reserved.get(product_id, 0) + int(line.quantity or 0)

    if truncated:
        current_app.logger.warning("Reservation scan truncated at %d orders", cap)

    return {
        "reservations": reserved,
        "orders_scanned": len(order_ids),
        "truncated": truncated,
    }


def reserved(product_ids: Iterable[int] | None = None) -> dict[int, int]:
    return scan_reservations(product_ids)["reservations"]
