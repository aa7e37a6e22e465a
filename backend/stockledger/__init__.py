# backend/stockledger/__init__.py
from __future__ import annotations

from typing import Any, Mapping

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .platform import init_platform
    init_platform(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.rebuild import rebuild_bp
    from .routes.movements import movements_bp
    from .routes.reservations import reservations_bp
    from .routes.hooks import hooks_bp
    from .routes.ledger import ledger_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(rebuild_bp)
    app.register_blueprint(movements_bp)
    app.register_blueprint(reservations_bp)
    app.register_blueprint(hooks_bp)
    app.register_blueprint(ledger_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
