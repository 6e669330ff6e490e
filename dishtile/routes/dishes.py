# dishtile/routes/dishes.py

import json

from flask import Blueprint, current_app, jsonify, make_response

from ..errors import NotFoundError
from ..services.envelope import todays_envelopes
from ..services.metrics import METRICS

dishes_bp = Blueprint("dishes", __name__)


@dishes_bp.get("/api/dishes")
def todays_dish():
    cache_control, expires = current_app.http_cache.until_next_day()
    try:
        payload = todays_envelopes(current_app.services.repository, salt_prefix=current_app.config["SALT_PREFIX"])
    except NotFoundError as e:
        current_app.logger.warning("api/dishes: %s", e)
        METRICS.increment("errors_404")
        return jsonify({"error": "No dish available for today"}), 404
    except Exception as e:
        current_app.logger.exception("api/dishes: %s", e)
        METRICS.increment("errors")
        return jsonify({"error": "Failed to fetch dish data"}), 500

    resp = make_response(json.dumps(payload, ensure_ascii=False))
    resp.headers["Content-Type"] = "application/json; charset=utf-8"
    resp.headers["Cache-Control"] = cache_control
    resp.headers["Expires"] = expires
    resp.headers["X-Robots-Tag"] = "noindex, nofollow, nosnippet, noarchive"
    resp.headers["Referrer-Policy"] = "no-referrer"
    METRICS.increment("api_dishes")
    return resp
