# Overview: Flask API routes for the movement ledger and sales series; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import reporting_service
from ..services.reporting_service import ReportError
from ._params import ParamError, optional_int, required_int


movements_bp = Blueprint("movements", __name__, url_prefix="/api")


@movements_bp.get("/movements")
@require_admin
def list_movements_route():
    """
    Newest-first movements for one product, each annotated with the stock
    level reconstructed from the live quantity, plus sales totals.
    """
    try:
        product_id = required_int(request.args, "product_id", minimum=1)
        limit = optional_int(request.args, "limit", minimum=1) or 100
        result = reporting_service.movement_history(product_id, limit=min(limit, 1000))
        return jsonify(result), 200
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception(
            "Failed to load movements (product_id=%s)", request.args.get("product_id")
        )
        return jsonify({"error": "Internal server error"}), 500


@movements_bp.get("/sales/daily")
@require_admin
def daily_sales_route():
    try:
        product_id = required_int(request.args, "product_id", minimum=1)
        days = optional_int(request.args, "days", minimum=1) or current_app.config["LEDGER_DEFAULT_WINDOW_DAYS"]
        labels, values = reporting_service.daily_series(product_id, days)
        return jsonify({
            "product_id": product_id,
            "labels": [label.isoformat() for label in labels],
            "values": values,
        }), 200
    except (ParamError, ReportError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception(
            "Failed to build daily sales (product_id=%s)", request.args.get("product_id")
        )
        return jsonify({"error": "Internal server error"}), 500
