# Overview: CommercePlatform backed by the host's shop_* tables in the same database.

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..extensions import db
from ..models import ShopOrder, ShopProduct
from .base import CommercePlatform, Order, OrderLine


class SqlCommercePlatform(CommercePlatform):

    def _filtered(self, query, status_filter, type_filter, created_after):
        if status_filter is not None:
            query = query.filter(ShopOrder.status.in_(list(status_filter)))
        if type_filter is not None:
            query = query.filter(ShopOrder.type == type_filter)
        if created_after is not None:
            query = query.filter(ShopOrder.created_at >= created_after)
        return query

    def get_order(self, order_id: int) -> Order | None:
        order = db.session.get(ShopOrder, order_id)
        if order is None:
            return None

        product_ids = {line.product_id for line in order.lines}
        parents = {}
        if product_ids:
            parents = dict(
                db.session.query(ShopProduct.id, ShopProduct.parent_id)
                .filter(ShopProduct.id.in_(product_ids))
                .all()
            )

        lines = []
        for line in order.lines:
            parent_id = parents.get(line.product_id)
            lines.append(
                OrderLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    is_variation=parent_id is not None,
                    parent_id=parent_id,
                    sku=line.sku,
                )
            )

        return Order(
            id=order.id,
            status=order.status,
            type=order.type,
            created_at=order.created_at,
            line_items=lines,
            customer_label=order.customer_label,
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
        q = self._filtered(db.session.query(ShopOrder.id), status_filter, type_filter, created_after)
        rows = (
            q.filter(ShopOrder.id > id_greater_than)
            .order_by(ShopOrder.id.asc())
            .limit(limit)
            .all()
        )
        return [int(r.id) for r in rows]

    def count_orders(
        self,
        *,
        status_filter: Iterable[str] | None = None,
        type_filter: str | None = None,
        created_after: datetime | None = None,
    ) -> int:
        q = self._filtered(db.session.query(ShopOrder.id), status_filter, type_filter, created_after)
        return int(q.count())

    def current_stock(self, product_id: int) -> int | None:
        product = db.session.get(ShopProduct, product_id)
        if product is None or not product.manage_stock:
            return None
        return product.stock_quantity
