# dishtile/routes/__init__.py

from .api import api_bp
from .dishes import dishes_bp
from .tiles import tiles_bp


def register_blueprints(app):
    app.register_blueprint(tiles_bp)
    app.register_blueprint(dishes_bp)
    app.register_blueprint(api_bp)
