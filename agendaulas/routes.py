from flask import Flask

from .views.api import api_bp
from .views.auth import auth_bp


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp, url_prefix="/api")
