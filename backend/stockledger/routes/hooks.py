# Overview: Flask API routes the host calls when stock changes; feeds the event recorder.

# backend/stockledger/routes/hooks.py
"""
Host webhooks. The host action has already happened by the time these are
called, so they always answer 202 once the request itself is well formed;
recording failures are logged by the recorder and never surface here.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import event_recorder
from stockledger.platform import get_platform
from stockledger.time_utils import parse_iso_datetime
from ._params import ParamError, required_int


hooks_bp = Blueprint("hooks", __name__, url_prefix="/api/hooks")


def _accepted(row):
    return jsonify({"accepted": True, "event_id": row.id if row is not None else None}), 202


def _order_hook(record):
    data = request.get_json(silent=True) or {}
    try:
        order_id = required_int(data, "order_id", minimum=1)
    except ParamError as e:
        return jsonify({"error": str(e)}), 400

    try:
        order = get_platform().get_order(order_id)
    except Exception:
        current_app.logger.exception("Failed to load order %s for stock hook", order_id)
        return jsonify({"accepted": True, "event_id": None}), 202

    if order is None:
        current_app.logger.warning("Stock hook for unknown order %s ignored", order_id)
        return jsonify({"accepted": True, "event_id": None}), 202

    return _accepted(record(order))


@hooks_bp.post("/order-reduced")
@require_admin
def order_reduced_route():
    return _order_hook(event_recorder.record_order_reduced)


@hooks_bp.post("/order-restored")
@require_admin
def order_restored_route():
    return _order_hook(event_recorder.record_order_restored)


@hooks_bp.post("/stock-set")
@require_admin
def stock_set_route():
    data = request.get_json(silent=True) or {}
    try:
        product_id = required_int(data, "product_id", minimum=1)
        quantity = required_int(data, "quantity")
        occurred_at = parse_iso_datetime(str(data["occurred_at"])) if data.get("occurred_at") else None
    except (ParamError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    row = event_recorder.record_stock_set(
        product_id,
        quantity,
        source=str(data.get("source") or "manual"),
        occurred_at=occurred_at,
    )
    return _accepted(row)
