# backend/toursales/__init__.py
import logging

from flask import Flask, jsonify
from flask.logging import default_handler

from .config import Config
from .extensions import db, migrate, init_remote_clients


def _configure_logging(app: Flask) -> None:
    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)

    # Service modules log under "toursales.*"
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(level)
    if not package_logger.handlers:
        package_logger.addHandler(default_handler)


def create_app(config_overrides: dict | None = None, *, provider_transport=None, identity_transport=None) -> Flask:
    """
    Application factory.

    ``config_overrides`` is applied before any extension is initialised, so
    tests can point SQLALCHEMY_DATABASE_URI at an in-memory database. The
    transports replace the network for the provider and identity clients.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    init_remote_clients(app, provider_transport=provider_transport, identity_transport=identity_transport)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.auth import auth_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(auth_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "NOT_FOUND", "message": "Route not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "METHOD_NOT_ALLOWED", "message": "Method not allowed"}), 405

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.logger.info("Tour sales API ready (env=%s)", app.config["APP_ENV"])
    return app
