# Overview: Flask API routes for the raw event log, log replay, and purge; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..models import EVENT_KINDS
from ..services import event_recorder, maintenance_service
from stockledger.time_utils import parse_iso_datetime
from ._params import ParamError, optional_int


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api")


@ledger_bp.get("/events")
@require_admin
def list_events_route():
    try:
        product_id = optional_int(request.args, "product_id", minimum=1)
        limit = optional_int(request.args, "limit", minimum=1) or 100
        kind = request.args.get("kind") or None
        if kind is not None and kind not in EVENT_KINDS:
            return jsonify({"error": f"kind must be one of {', '.join(EVENT_KINDS)}"}), 400
        events = event_recorder.list_events(product_id=product_id, kind=kind, limit=min(limit, 1000))
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list stock events")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.post("/ledger/replay")
@require_admin
def replay_route():
    """
    Re-derive movements from the raw event log. Body: {product_id?, since?}

    Movements in the window are replaced, whoever wrote them.
    """
    data = request.get_json(silent=True) or {}
    try:
        product_id = optional_int(data, "product_id", minimum=1)
        since = parse_iso_datetime(str(data["since"])) if data.get("since") else None
    except (ParamError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    try:
        result = event_recorder.replay_event_log(product_id=product_id, since=since)
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to replay event log (product_id=%s)", product_id)
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.post("/purge")
@require_admin
def purge_route():
    """
    Irreversibly delete the ledger, the raw event log, the stock state cache
    and all rebuild jobs. Body must be {"confirm": true}.
    """
    data = request.get_json(silent=True) or {}
    if data.get("confirm") is not True:
        return jsonify({"error": "Purge requires {\"confirm\": true}"}), 400

    try:
        counts = maintenance_service.purge()
        current_app.logger.warning("Ledger purged: %s", counts)
        return jsonify({"purged": counts}), 200
    except Exception:
        current_app.logger.exception("Failed to purge ledger")
        return jsonify({"error": "Internal server error"}), 500
