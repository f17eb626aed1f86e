# backend/slipdesk/__init__.py
import logging
import time

from flask import Flask, g, jsonify, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger(__name__).setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # /api/slips and /api/slips/ hit the same route
    app.url_map.strict_slashes = False

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.items import items_bp
    from .routes.slips import slips_bp
    from .routes.income import income_bp
    from .routes.reset import reset_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(slips_bp)
    app.register_blueprint(income_bp)
    app.register_blueprint(reset_bp)

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ORIGINS") or ())
        if origin and (origin in allowed_origins or "*" in allowed_origins):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        if started is not None:
            app.logger.debug(
                "%s %s -> %s (%.1f ms)",
                request.method, request.path, response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        return response

    @app.errorhandler(404)
    def route_not_found(e):
        return jsonify({"error": "Route not found", "requestedUrl": request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "requestedUrl": request.path}), 405

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
