from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from kitchen_inventory.extensions import db
from kitchen_inventory.services.database_info import check_health

bp = Blueprint("health", __name__, url_prefix="/health")


@bp.get("/")
def status():
    if not current_app.config.get("DATABASE_AVAILABLE", True):
        return (
            jsonify(
                {
                    "status": "Error",
                    "database": "Error",
                    "error": current_app.config.get("DATABASE_ERROR"),
                }
            ),
            503,
        )

    health = check_health(db.engine)
    payload = {
        "status": "OK" if health.status == "OK" else "Error",
        "database": health.status,
        "detail": health.detail,
    }
    return jsonify(payload), 200 if health.status == "OK" else 503
