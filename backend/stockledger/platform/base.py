# Overview: Contract the ledger consumes from the host commerce platform.

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int
    is_variation: bool = False
    parent_id: Optional[int] = None
    sku: Optional[str] = None

    @property
    def ledger_product_id(self) -> int:
        """Variations roll up to their parent product."""
        if self.is_variation and self.parent_id:
            return self.parent_id
        return self.product_id


@dataclass(frozen=True)
class Order:
    id: int
    status: str
    type: str
    created_at: datetime
    line_items: list[OrderLine] = field(default_factory=list)
    customer_label: Optional[str] = None


class CommercePlatform(ABC):
    """
    Read-only view of the host platform: the source of truth for orders and
    live stock. Datetimes crossing this boundary are UTC-naive.
    """

    @abstractmethod
    def get_order(self, order_id: int) -> Order | None:
        ...

    @abstractmethod
    def list_orders(
        self,
        *,
        status_filter: Iterable[str] | None = None,
        type_filter: str | None = None,
        created_after: datetime | None = None,
        id_greater_than: int = 0,
        limit: int = 50,
    ) -> list[int]:
        """Order ids matching the filters, ascending by id."""

    @abstractmethod
    def count_orders(
        self,
        *,
        status_filter: Iterable[str] | None = None,
        type_filter: str | None = None,
        created_after: datetime | None = None,
    ) -> int:
        ...

    @abstractmethod
    def current_stock(self, product_id: int) -> int | None:
        """Live on-hand quantity, or None when the product does not track stock."""
