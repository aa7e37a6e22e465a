# Overview: Service-layer operations for maintenance; ledger provisioning and purge.

from __future__ import annotations

from ..extensions import db
from ..models import LEDGER_TABLES, ProductStockState, RebuildJob, StockEvent
from . import movement_store


def install_ledger_tables() -> list[str]:
    """Create any missing ledger table; returns the names that were created."""
    created = []
    for table in LEDGER_TABLES:
        if not movement_store.table_exists(table):
            table.create(bind=db.session.connection(), checkfirst=True)
            created.append(table.name)
    db.session.commit()
    return created


def purge() -> dict[str, int]:
    """
    Delete every ledger row, raw event, cached stock state and rebuild job.

    Irreversible. Missing tables count as already empty.
    """
    counts = {"movements": movement_store.truncate()}
    for key, model in (
        ("events", StockEvent),
        ("stock_states", ProductStockState),
        ("rebuild_jobs", RebuildJob),
    ):
        if movement_store.table_exists(model.__table__):
            counts[key] = db.session.query(model).delete(synchronize_session=False)
        else:
            counts[key] = 0
    db.session.commit()
    return counts
