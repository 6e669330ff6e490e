# dishtile/routes/api.py

import json

from flask import Blueprint, current_app, jsonify, make_response

from ..services.metrics import METRICS

api_bp = Blueprint("api", __name__)


@api_bp.get("/api/health")
def health():
    try:
        snapshot = current_app.metrics.snapshot()
        body = {
            "status": "ok",
            "service": current_app.config["SITE_NAME"],
            "backend": current_app.config["STORAGE_BACKEND"],
            "metrics": snapshot,
        }
        resp = make_response(json.dumps(body, ensure_ascii=False))
        resp.headers["Content-Type"] = "application/json; charset=utf-8"
        resp.cache_control.no_store = True
        METRICS.increment("api_health")
        return resp
    except Exception as e:
        current_app.logger.error("api/health: %s", e)
        METRICS.increment("errors")
        return jsonify({"status": "unhealthy"}), 500
