# backend/stocktrack/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    # Overrides must land before the extensions read the config
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.units import units_bp
    from .routes.sales import sales_bp
    from .routes.approvals import approvals_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(units_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(approvals_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
