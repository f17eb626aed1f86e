# Overview: Flask API routes for sales slips; parses input and returns JSON responses.

"""Slip API routes (create, list, cancel, update, delete)"""

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..services import slip_service
from ..services.errors import SlipdeskError
from .params import date_arg, int_arg, json_body


slips_bp = Blueprint("slips", __name__, url_prefix="/api/slips")


@slips_bp.post("/")
def create_slip_route():
    """
    Create a slip, decrement stock and record income.

    Body: customerName?, customerPhone?, paymentMethod?, notes?,
    subtotal, totalAmount, products[]
    """
    try:
        data = json_body()
        slip = slip_service.create_slip(db.session, data)
        return jsonify(slip.to_dict()), 201

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create slip")
        return jsonify({"error": "Internal server error"}), 500


@slips_bp.get("/")
def list_slips_route():
    try:
        result = slip_service.list_slips(
            db.session,
            page=int_arg("page", 1),
            limit=int_arg("limit", 20),
            start=date_arg("startDate"),
            end=date_arg("endDate", end_of_day=True),
            status=request.args.get("status") or None,
        )
        return jsonify(result), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list slips")
        return jsonify({"error": "Internal server error"}), 500


@slips_bp.get("/<int:slip_id>")
def get_slip_route(slip_id: int):
    try:
        slip = slip_service.get_slip(db.session, slip_id)
        return jsonify(slip.to_dict()), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load slip")
        return jsonify({"error": "Internal server error"}), 500


@slips_bp.patch("/cancel/<int:slip_id>")
def cancel_slip_route(slip_id: int):
    """
    Cancel a slip: stock is restored and its income deactivated.

    Cancelling an already cancelled slip is a 400, not a silent success.
    """
    try:
        data = json_body()
        result = slip_service.cancel_slip(db.session, slip_id, data.get("reason"))
        return jsonify({
            "message": "Slip cancelled successfully",
            "slip": result.slip.to_dict(),
            "details": result.details(),
        }), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel slip")
        return jsonify({"error": "Internal server error"}), 500


@slips_bp.put("/<int:slip_id>")
def update_slip_route(slip_id: int):
    try:
        data = json_body()
        slip = slip_service.update_slip(db.session, slip_id, data)
        return jsonify(slip.to_dict()), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update slip")
        return jsonify({"error": "Internal server error"}), 500


@slips_bp.delete("/<int:slip_id>")
def delete_slip_route(slip_id: int):
    try:
        result = slip_service.delete_slip(db.session, slip_id)
        return jsonify({
            "message": "Slip deleted successfully",
            "details": result.details(),
        }), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete slip")
        return jsonify({"error": "Internal server error"}), 500
