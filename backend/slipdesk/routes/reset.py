# Overview: Guarded bulk-wipe endpoint for resetting a store's data.

import hmac

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..services import reset_service


reset_bp = Blueprint("reset", __name__, url_prefix="/api/reset")


@reset_bp.post("/")
def reset_route():
    """
    Delete all slips, income records and items.

    Body: {"secret": RESET_SECRET, "confirm": "RESET_ALL"}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    secret = str(data.get("secret") or "")
    expected = current_app.config.get("RESET_SECRET") or ""

    if not expected or not hmac.compare_digest(secret, expected):
        return jsonify({"error": "Invalid reset secret"}), 403
    if data.get("confirm") != reset_service.RESET_CONFIRMATION:
        return jsonify({
            "error": "Confirmation required",
            "details": f'Send confirm: "{reset_service.RESET_CONFIRMATION}"',
        }), 403

    try:
        deleted = reset_service.wipe_all(db.session)
        current_app.logger.warning("Store data reset via API")
        return jsonify({"message": "All data deleted successfully", "deleted": deleted}), 200

    except Exception:
        current_app.logger.exception("Failed to reset data")
        return jsonify({"error": "Internal server error"}), 500
