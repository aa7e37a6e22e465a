from __future__ import annotations

from flask import Flask, current_app

from .base import CommercePlatform, Order, OrderLine

EXTENSION_KEY = "stockledger.platform"


def build_platform(config) -> CommercePlatform:
    kind = (config.get("COMMERCE_PLATFORM") or "sql").lower()
    if kind == "sql":
        from .sql import SqlCommercePlatform
        return SqlCommercePlatform()
    if kind == "woocommerce":
        from .rest import WooCommerceRestPlatform
        return WooCommerceRestPlatform(
            config["WOOCOMMERCE_URL"],
            config["WOOCOMMERCE_KEY"],
            config["WOOCOMMERCE_SECRET"],
            timeout=config.get("WOOCOMMERCE_TIMEOUT", 15.0),
        )
    raise ValueError(f"Unsupported COMMERCE_PLATFORM: {kind}")


def init_platform(app: Flask) -> None:
    # A platform placed in app.extensions beforehand (tests, embedding hosts) wins
    if EXTENSION_KEY not in app.extensions:
        app.extensions[EXTENSION_KEY] = build_platform(app.config)


def get_platform() -> CommercePlatform:
    return current_app.extensions[EXTENSION_KEY]


__all__ = ["CommercePlatform", "Order", "OrderLine", "build_platform", "init_platform", "get_platform"]
