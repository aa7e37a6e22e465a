# Overview: Flask API routes for ledger rebuild jobs; parses input and returns JSON responses.

# backend/stockledger/routes/rebuild.py
"""
Rebuild is driven by the client: start once, then POST step until the job
leaves RUNNING. Every response carries the job snapshot.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import rebuild_service
from ..services.rebuild_service import (
    RebuildConflictError,
    RebuildError,
    RebuildNotFoundError,
)
from ._params import ParamError, optional_int


rebuild_bp = Blueprint("rebuild", __name__, url_prefix="/api/rebuild")


def _rebuild_error(e: RebuildError):
    if isinstance(e, RebuildNotFoundError):
        return jsonify({"error": str(e), "details": e.details}), 404
    if isinstance(e, RebuildConflictError):
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify({"error": str(e), "details": e.details}), 400


@rebuild_bp.post("/start")
@require_admin
def start_route():
    """
    Start a rebuild. Body: {scope: ALL|PRODUCT, product_id?, days?, batch_size?}

    Any RUNNING job is aborted first.
    """
    data = request.get_json(silent=True) or {}
    try:
        job = rebuild_service.start(
            str(data.get("scope") or "ALL"),
            product_id=optional_int(data, "product_id", minimum=1),
            days=optional_int(data, "days", minimum=1),
            batch_size=optional_int(data, "batch_size", minimum=1),
        )
        return jsonify({"job": job.to_dict()}), 201
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except RebuildError as e:
        return _rebuild_error(e)
    except Exception:
        current_app.logger.exception("Failed to start rebuild (scope=%s)", data.get("scope"))
        return jsonify({"error": "Internal server error"}), 500


@rebuild_bp.post("/step")
@require_admin
def step_route():
    data = request.get_json(silent=True) or {}
    try:
        job = rebuild_service.step(optional_int(data, "job_id", minimum=1))
        return jsonify({"job": job.to_dict()}), 200
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except RebuildError as e:
        return _rebuild_error(e)
    except Exception:
        current_app.logger.exception("Failed to step rebuild (job_id=%s)", data.get("job_id"))
        return jsonify({"error": "Internal server error"}), 500


@rebuild_bp.post("/abort")
@require_admin
def abort_route():
    data = request.get_json(silent=True) or {}
    try:
        job = rebuild_service.abort(optional_int(data, "job_id", minimum=1))
        return jsonify({"job": job.to_dict()}), 200
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except RebuildError as e:
        return _rebuild_error(e)
    except Exception:
        current_app.logger.exception("Failed to abort rebuild (job_id=%s)", data.get("job_id"))
        return jsonify({"error": "Internal server error"}), 500


@rebuild_bp.get("/status")
@require_admin
def status_route():
    try:
        job = rebuild_service.status(optional_int(request.args, "job_id", minimum=1))
        return jsonify({"job": job.to_dict() if job else None}), 200
    except ParamError as e:
        return jsonify({"error": str(e)}), 400
    except RebuildError as e:
        return _rebuild_error(e)
    except Exception:
        current_app.logger.exception("Failed to load rebuild status (job_id=%s)", request.args.get("job_id"))
        return jsonify({"error": "Internal server error"}), 500
