# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Unset means the API is open (local/dev installs behind the host admin)
    ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN") or None

    # "sql" reads the shop_* tables, "woocommerce" talks to the store REST API
    COMMERCE_PLATFORM = os.environ.get("COMMERCE_PLATFORM", "sql")
    WOOCOMMERCE_URL = os.environ.get("WOOCOMMERCE_URL", "")
    WOOCOMMERCE_KEY = os.environ.get("WOOCOMMERCE_KEY", "")
    WOOCOMMERCE_SECRET = os.environ.get("WOOCOMMERCE_SECRET", "")
    WOOCOMMERCE_TIMEOUT = float(os.environ.get("WOOCOMMERCE_TIMEOUT", "15"))

    # Dual-write: hooks also write normalized movement rows
    LEDGER_PERSIST_MOVEMENTS = _env_bool("LEDGER_PERSIST_MOVEMENTS", True)

    LEDGER_REBUILD_BATCH_SIZE = int(os.environ.get("LEDGER_REBUILD_BATCH_SIZE", "50"))
    LEDGER_DEFAULT_WINDOW_DAYS = int(os.environ.get("LEDGER_DEFAULT_WINDOW_DAYS", "90"))
    LEDGER_RESERVATION_ORDER_CAP = int(os.environ.get("LEDGER_RESERVATION_ORDER_CAP", "1000"))

    LEDGER_PAID_STATUSES = _env_list("LEDGER_PAID_STATUSES", "processing,completed")
    LEDGER_RESTORE_STATUSES = _env_list("LEDGER_RESTORE_STATUSES", "refunded,cancelled")
    LEDGER_RESERVED_STATUSES = _env_list("LEDGER_RESERVED_STATUSES", "pending,on-hold,processing")
    LEDGER_PRIMARY_ORDER_TYPE = os.environ.get("LEDGER_PRIMARY_ORDER_TYPE", "shop_order")

    # Calendar days for the sales series are cut at midnight in this zone
    LEDGER_TIMEZONE = os.environ.get("LEDGER_TIMEZONE", "UTC")
