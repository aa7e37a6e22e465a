# Overview: Flask API routes for live reservation totals; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import reservation_service
from ._params import ParamError, int_list


reservations_bp = Blueprint("reservations", __name__, url_prefix="/api/reservations")


@reservations_bp.get("")
@require_admin
def reservations_route():
    """
    Units held by orders in a reserved status, per product.

    truncated is true when more orders matched than the scan cap allows;
    the totals then undercount.
    """
    try:
        product_ids = int_list(request.args.get("product_ids"), "product_ids")
        result = reservation_service.scan_reservations(product_ids)
        return jsonify({
            "reservations": {str(pid): qty for pid, qty in sorted(result["reservations"].items())},
            "orders_scanned": result["orders_scanned"],
            "truncated": result["truncated"],
        }), 200
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute reservations")
        return jsonify({"error": "Internal server error"}), 500
