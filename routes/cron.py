import hmac

from flask import Blueprint, request, jsonify, current_app

from services.sweeper import sweep

cron_bp = Blueprint("cron", __name__, url_prefix="/cron")


def _authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET")
    header = request.headers.get("Authorization") or ""
    if not secret or not header.startswith("Bearer "):
        return False
    return hmac.compare_digest(header[len("Bearer "):], secret)


@cron_bp.route("/rain-check", methods=["GET", "POST"])
def rain_check():
    if not _authorized():
        return jsonify(error="Unauthorized"), 401
    processed = sweep()
    return jsonify(success=True, processed_count=processed), 200
