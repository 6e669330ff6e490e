# dishtile/__init__.py

import logging
from datetime import datetime, timezone

from flask import Flask, g, jsonify, request

from .config import Config
from .routes import register_blueprints
from .services.cache import CacheManager
from .services.container import build_services
from .services.metrics import METRICS


def create_app(config=None, services=None):
    """
    Create and configure the Flask application.

    Args:
        config: a Config; read from the environment when omitted.
        services: a prebuilt Services; built from ``config`` when omitted.

    Raises:
        ConfigurationError: before any collaborator is built, if the
            configuration is incomplete.
    """
    app = Flask(__name__)

    cfg = config or Config()
    cfg.validate()
    # Flask copies UPPERCASE attributes into app.config
    app.config.from_object(cfg)

    # Basic logging if none configured
    if not logging.getLogger().handlers:
        logging.basicConfig(level=cfg.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    app.metrics = METRICS
    app.metrics.increment("app_starts")
    app.services = services or build_services(cfg)
    app.http_cache = CacheManager(stored_ttl=cfg.TILE_CACHE_TTL, fallback_ttl=cfg.TILE_FALLBACK_TTL)

    # ---- Security headers ----
    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ---- Request timing ----
    @app.before_request
    def start_timer():
        g._t0 = datetime.now(timezone.utc)

    @app.after_request
    def record_timing(response):
        t0 = getattr(g, "_t0", None)
        if t0:
            dt_ms = (datetime.now(timezone.utc) - t0).total_seconds() * 1000.0
            response.headers["Server-Timing"] = "app;dur=%.1f" % dt_ms
            app.metrics.increment("requests")
            app.metrics.increment("requests_%s" % request.method.lower())
        return response

    # ---- Error handlers ----
    @app.errorhandler(404)
    def not_found(error):
        app.metrics.increment("errors_404")
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        app.metrics.increment("errors_405")
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(error):
        app.metrics.increment("errors_500")
        return jsonify({"error": "Internal server error"}), 500

    register_blueprints(app)
    return app
