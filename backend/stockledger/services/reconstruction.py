# Overview: Backward walk of the movement ledger from the live on-hand quantity.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..models import MOVEMENT_SET_STOCK, StockMovement


@dataclass(frozen=True)
class ReconstructedMovement:
    movement: StockMovement
    computed_qoh_after: Optional[int]
    drift: Optional[int]

    def to_dict(self) -> dict:
        data = self.movement.to_dict()
        data["computed_qoh_after"] = self.computed_qoh_after
        data["drift"] = self.drift
        return data


def reconstruct(
    rows: Iterable[StockMovement],
    authoritative_qoh: Optional[int],
) -> list[ReconstructedMovement]:
    """
    Annotate newest-first movements with the stock level after each one.

    Starting from the live quantity, each row gets the running value, then
    its own quantity is undone to step back in time. A SET_STOCK row resets
    the running value to the stock it recorded. drift compares the computed
    level with the live quantity. With no live quantity (stock not tracked)
    both values are None.
    """
    if authoritative_qoh is None:
        return [ReconstructedMovement(row, None, None) for row in rows]

    rolling = authoritative_qoh
    views = []
    for row in rows:
        if row.kind == MOVEMENT_SET_STOCK and row.qoh_after is not None:
            rolling = row.qoh_after
        views.append(ReconstructedMovement(row, rolling, rolling - authoritative_qoh))
        rolling -= row.quantity or 0
    return views
