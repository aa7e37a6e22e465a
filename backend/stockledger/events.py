# Overview: Closed set of raw stock events and their JSON payload codec.

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Union

from stockledger.models import EVENT_ORDER_REDUCED, EVENT_ORDER_RESTORED, EVENT_STOCK_SET
from stockledger.time_utils import parse_iso_datetime, to_utc_naive


class MalformedEventError(ValueError):
    """Raised when a raw event payload cannot be decoded into a known event."""


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    sku: str | None = None


@dataclass(frozen=True)
class StockSet:
    kind: ClassVar[str] = EVENT_STOCK_SET

    product_id: int
    quantity: int
    source: str = "manual"
    previous_quantity: int | None = None
    occurred_at: datetime | None = None


@dataclass(frozen=True)
class _OrderEvent:
    order_id: int
    status: str
    order_created_at: datetime
    lines: tuple[LineItem, ...] = field(default_factory=tuple)
    customer_label: str | None = None


@dataclass(frozen=True)
class OrderReduced(_OrderEvent):
    kind: ClassVar[str] = EVENT_ORDER_REDUCED


@dataclass(frozen=True)
class OrderRestored(_OrderEvent):
    kind: ClassVar[str] = EVENT_ORDER_RESTORED


LedgerEvent = Union[StockSet, OrderReduced, OrderRestored]


def _iso(dt: datetime | None) -> str | None:
    # Keeps microseconds so replayed rows match the live rows exactly
    if dt is None:
        return None
    return to_utc_naive(dt).isoformat() + "Z"


def to_payload(event: LedgerEvent) -> dict[str, Any]:
    if isinstance(event, StockSet):
        return {
            "product_id": event.product_id,
            "quantity": event.quantity,
            "source": event.source,
            "previous_quantity": event.previous_quantity,
            "occurred_at": _iso(event.occurred_at),
        }
    return {
        "order_id": event.order_id,
        "status": event.status,
        "customer_label": event.customer_label,
        "order_created_at": _iso(event.order_created_at),
        "lines": [
            {"product_id": line.product_id, "quantity": line.quantity, "sku": line.sku}
            for line in event.lines
        ],
    }


def dumps(event: LedgerEvent) -> str:
    return json.dumps(to_payload(event), separators=(",", ":"), ensure_ascii=False)


def _int(data: dict, key: str, *, required: bool = True) -> int | None:
    value = data.get(key)
    if value is None:
        if required:
            raise MalformedEventError(f"{key} is required")
        return None
    if isinstance(value, bool):
        raise MalformedEventError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedEventError(f"{key} must be an integer")


def _datetime(data: dict, key: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise MalformedEventError(f"{key} must be an ISO-8601 datetime")


def _lines(raw: Any) -> tuple[LineItem, ...]:
    """Decode line items, dropping the ones that cannot be used."""
    if not isinstance(raw, list):
        raise MalformedEventError("lines must be a list")
    lines = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            product_id = _int(item, "product_id")
            quantity = _int(item, "quantity")
        except MalformedEventError:
            continue
        if not product_id:
            continue
        sku = item.get("sku")
        lines.append(LineItem(product_id=product_id, quantity=quantity, sku=str(sku) if sku else None))
    return tuple(lines)


def parse_event(kind: str, payload: dict | str) -> LedgerEvent:
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            raise MalformedEventError("payload is not valid JSON")
    if not isinstance(payload, dict):
        raise MalformedEventError("payload must be a JSON object")

    if kind == EVENT_STOCK_SET:
        return StockSet(
            product_id=_int(payload, "product_id"),
            quantity=_int(payload, "quantity"),
            source=str(payload.get("source") or "manual"),
            previous_quantity=_int(payload, "previous_quantity", required=False),
            occurred_at=_datetime(payload, "occurred_at"),
        )

    if kind in (EVENT_ORDER_REDUCED, EVENT_ORDER_RESTORED):
        created_at = _datetime(payload, "order_created_at")
        if created_at is None:
            raise MalformedEventError("order_created_at is required")
        cls = OrderReduced if kind == EVENT_ORDER_REDUCED else OrderRestored
        return cls(
            order_id=_int(payload, "order_id"),
            status=str(payload.get("status") or ""),
            order_created_at=created_at,
            lines=_lines(payload.get("lines")),
            customer_label=payload.get("customer_label") or None,
        )

    raise MalformedEventError(f"unknown event kind: {kind}")
