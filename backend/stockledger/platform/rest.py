# Overview: CommercePlatform backed by the WooCommerce REST API (wc/v3) over httpx.

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

import httpx

from stockledger.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .base import CommercePlatform, Order, OrderLine


PRIMARY_ORDER_TYPE = "shop_order"
PAGE_SIZE = 100


class WooCommerceRestPlatform(CommercePlatform):
    """
    The orders endpoint only ever returns primary orders (refunds live under
    /orders/<id>/refunds), so any other type_filter matches nothing.

    The API has no "id greater than" filter: list_orders pages through the
    id-ascending listing and skips ids at or below the cursor.
    """

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        *,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ):
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/") + "/wp-json/wc/v3",
            auth=(consumer_key, consumer_secret),
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        response = self._client.get(path, params=params)
        response.raise_for_status()
        return response

    def _list_params(self, status_filter, created_after) -> dict[str, Any]:
        params: dict[str, Any] = {"orderby": "id", "order": "asc", "dates_are_gmt": "true"}
        params["status"] = ",".join(status_filter) if status_filter is not None else "any"
        if created_after is not None:
            params["after"] = to_utc_z(created_after)
        return params

    @staticmethod
    def _customer_label(data: dict[str, Any]) -> str | None:
        billing = data.get("billing") or {}
        name = f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip()
        return name or billing.get("email") or None

    @staticmethod
    def _line(item: dict[str, Any]) -> OrderLine:
        variation_id = int(item.get("variation_id") or 0)
        product_id = int(item.get("product_id") or 0)
        if variation_id:
            return OrderLine(
                product_id=variation_id,
                quantity=int(item.get("quantity") or 0),
                is_variation=True,
                parent_id=product_id,
                sku=item.get("sku") or None,
            )
        return OrderLine(
            product_id=product_id,
            quantity=int(item.get("quantity") or 0),
            sku=item.get("sku") or None,
        )

    def get_order(self, order_id: int) -> Order | None:
        response = self._client.get(f"/orders/{order_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()

        created_raw = data.get("date_created_gmt") or data.get("date_created")
        created_at = parse_iso_datetime(created_raw) if created_raw else None

        return Order(
            id=int(data["id"]),
            status=str(data.get("status") or ""),
            type=PRIMARY_ORDER_TYPE,
            created_at=created_at or utcnow(),
            line_items=[self._line(item) for item in data.get("line_items") or []],
            customer_label=self._customer_label(data),
        )

    def list_orders(
        self,
        *,
        status_filter: Iterable[str] | None = None,
        type_filter: str | None = None,
        created_after: datetime | None = None,
        id_greater_than: int = 0,
        limit: int = 50,
    ) -> list[int]:
        if type_filter is not None and type_filter != PRIMARY_ORDER_TYPE:
            return []

        params = self._list_params(status_filter, created_after)
        params["per_page"] = PAGE_SIZE

        ids: list[int] = []
        page = 1
        while len(ids) < limit:
            params["page"] = page
            response = self._get("/orders", params=params)
            rows = response.json()
            if not rows:
                break
            for row in rows:
                order_id = int(row["id"])
                if order_id > id_greater_than:
                    ids.append(order_id)
                    if len(ids) >= limit:
                        break
            total_pages = int(response.headers.get("X-WP-TotalPages") or page)
            if page >= total_pages:
                break
            page += 1
        return ids

    def count_orders(
        self,
        *,
        status_filter: Iterable[str] | None = None,
        type_filter: str | None = None,
        created_after: datetime | None = None,
    ) -> int:
        if type_filter is not None and type_filter != PRIMARY_ORDER_TYPE:
            return 0
        params = self._list_params(status_filter, created_after)
        params["per_page"] = 1
        response = self._get("/orders", params=params)
        return int(response.headers.get("X-WP-Total") or 0)

    def current_stock(self, product_id: int) -> int | None:
        response = self._client.get(f"/products/{product_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        if not data.get("manage_stock"):
            return None
        quantity = data.get("stock_quantity")
        return int(quantity) if quantity is not None else None
