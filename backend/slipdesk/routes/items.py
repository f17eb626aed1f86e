# Overview: Flask API routes for the inventory catalog; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..services import item_service
from ..services.errors import SlipdeskError
from .params import bool_arg, int_arg, json_body


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("/")
def list_items_route():
    """
    List active items.

    Query: search, category, lowStock, page, limit
    """
    try:
        result = item_service.list_items(
            db.session,
            search=request.args.get("search") or None,
            category=request.args.get("category") or None,
            low_stock=bool_arg("lowStock"),
            page=int_arg("page", 1),
            limit=int_arg("limit", 50),
        )
        return jsonify(result), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/low-stock")
def low_stock_route():
    try:
        items = item_service.low_stock_items(db.session)
        return jsonify([i.to_dict() for i in items]), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list low-stock items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/out-of-stock")
def out_of_stock_route():
    try:
        items = item_service.out_of_stock_items(db.session)
        return jsonify([i.to_dict() for i in items]), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list out-of-stock items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(db.session, item_id)
        return jsonify(item.to_dict()), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.post("/")
def create_item_route():
    try:
        data = json_body()
        item = item_service.create_item(db.session, data)
        return jsonify(item.to_dict()), 201

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.put("/<int:item_id>")
def update_item_route(item_id: int):
    try:
        data = json_body()
        item = item_service.update_item(db.session, item_id, data)
        return jsonify(item.to_dict()), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.patch("/<int:item_id>/stock")
def adjust_stock_route(item_id: int):
    """
    Manual stock correction.

    Body: quantity, operation (set | add | subtract, default set)
    """
    try:
        data = json_body()
        item = item_service.adjust_stock(
            db.session,
            item_id,
            data.get("quantity"),
            data.get("operation") or "set",
        )
        return jsonify(item.to_dict()), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.delete("/<int:item_id>")
def delete_item_route(item_id: int):
    try:
        item_service.soft_delete_item(db.session, item_id)
        return jsonify({"message": "Item deleted successfully"}), 200

    except SlipdeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete item")
        return jsonify({"error": "Internal server error"}), 500
