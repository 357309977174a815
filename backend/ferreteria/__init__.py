# backend/ferreteria/__init__.py
from flask import Flask, jsonify

from .config import Config, engine_options_for
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options_for(app.config["SQLALCHEMY_DATABASE_URI"], app.config["SQLITE_TIMEOUT_SECONDS"]),
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.sales import sales_bp
    from .routes.stock import stock_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.audit import audit_bp

    app.register_blueprint(sales_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(audit_bp)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
