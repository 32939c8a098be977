# backend/stockmesh/__init__.py
import logging

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .clients import EXTENSION_KEY, build_clients
from .config import ALL_SERVICES, Config
from .extensions import db, migrate


def _service_blueprints():
    from .routes.auth import auth_bp
    from .routes.branches import branches_bp
    from .routes.products import products_bp
    from .routes.stocks import stocks_bp
    from .routes.warehouses import warehouses_bp

    return {
        "identity": auth_bp,
        "products": products_bp,
        "branches": branches_bp,
        "warehouses": warehouses_bp,
        "stocks": stocks_bp,
    }


def create_app(config_overrides: dict | None = None, clients=None) -> Flask:
    """
    Build one StockMesh process.

    Args:
        config_overrides: values applied on top of Config (tests use this)
        clients: a ServiceClients bundle; built from config when omitted
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    app.extensions[EXTENSION_KEY] = clients if clients is not None else build_clients(app.config)

    from .routes.system import system_bp
    app.register_blueprint(system_bp)

    blueprints = _service_blueprints()
    for name in app.config["ENABLED_SERVICES"]:
        if name not in blueprints:
            raise ValueError(f"Unknown service '{name}'; expected one of: {', '.join(ALL_SERVICES)}")
        app.register_blueprint(blueprints[name])

    allowed_origins = set(app.config["CORS_ALLOWED_ORIGINS"])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code
        db.session.rollback()
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.logger.info("StockMesh serving: %s", ", ".join(app.config["ENABLED_SERVICES"]))
    return app
