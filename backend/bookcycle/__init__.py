# backend/bookcycle/__init__.py
import logging

from flask import Flask, jsonify, request

from .config import Config
from .errors import PurchaseCycleError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Services log through module loggers under "bookcycle"
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    logging.getLogger("bookcycle").setLevel(level)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.sheets import sheets_bp
    from .routes.requests import requests_bp
    from .routes.prices import prices_bp
    from .routes.purchases import purchases_bp
    from .routes.history import history_bp
    from .routes.users import users_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(sheets_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(prices_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(history_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(dashboard_bp)

    @app.errorhandler(PurchaseCycleError)
    def handle_domain_error(e: PurchaseCycleError):
        if e.status_code >= 500:
            app.logger.error("Store failure on %s %s: %s", request.method, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    allowed_origins = {
        origin.strip()
        for origin in str(app.config.get("CORS_ALLOWED_ORIGINS", "")).split(",")
        if origin.strip()
    }

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
