# Overview: Read-only Flask API routes over the income mirror (listing and reports).

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..services import income_service
from ..services.errors import SlipdeskError
from .params import date_arg, int_arg


income_bp = Blueprint("income", __name__, url_prefix="/api/income")


@income_bp.get("/")
def list_income_route():
    """
    Active income records, newest first.

    Query: page, limit, startDate, endDate, customerName
    """
    try:
        result = income_service.list_income(
            db.session,
            page=int_arg("page", 1),
            limit=int_arg("limit", 10),
            start=date_arg("startDate"),
            end=date_arg("endDate", end_of_day=True),
            customer_name=request.args.get("customerName") or None,
        )
        return jsonify(result), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list income")
        return jsonify({"error": "Internal server error"}), 500


@income_bp.get("/summary")
def income_summary_route():
    try:
        return jsonify(income_service.income_summary(db.session)), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build income summary")
        return jsonify({"error": "Internal server error"}), 500


@income_bp.get("/top-products")
def top_products_route():
    try:
        rows = income_service.top_selling_products(
            db.session,
            limit=int_arg("limit", 10),
            start=date_arg("startDate"),
            end=date_arg("endDate", end_of_day=True),
        )
        return jsonify(rows), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build top products")
        return jsonify({"error": "Internal server error"}), 500


@income_bp.get("/trends")
def trends_route():
    try:
        rows = income_service.income_trends(
            db.session,
            period=request.args.get("period") or "month",
            limit=int_arg("limit", 12),
        )
        return jsonify(rows), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build income trends")
        return jsonify({"error": "Internal server error"}), 500


@income_bp.get("/range")
def income_range_route():
    """Active records between startDate and endDate (both required)."""
    try:
        start = date_arg("startDate")
        end = date_arg("endDate", end_of_day=True)
        if start is None or end is None:
            return jsonify({"error": "startDate and endDate required"}), 400
        records = income_service.income_by_date_range(db.session, start, end)
        return jsonify({
            "records": [r.to_dict() for r in records],
            "totalIncome": round(sum(r.total_income for r in records), 2),
        }), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load income range")
        return jsonify({"error": "Internal server error"}), 500


@income_bp.get("/<int:income_id>")
def get_income_route(income_id: int):
    try:
        record = income_service.get_income(db.session, income_id)
        return jsonify(record.to_dict()), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load income record")
        return jsonify({"error": "Internal server error"}), 500
