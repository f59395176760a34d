# backend/gymledger/__init__.py
import uuid

from flask import Flask, g, request

from .config import Config
from .extensions import db, migrate
from .logging_config import LogContext, configure_logging



def create_app(test_config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    # Overrides must land before extensions read the config
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config["LOG_LEVEL"], json_output=app.config["LOG_JSON"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.payments import payments_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(reports_bp)

    @app.before_request
    def bind_correlation_id():
        LogContext.clear()
        correlation_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        g.correlation_id = correlation_id
        LogContext.set(correlation_id=correlation_id)

    @app.after_request
    def add_correlation_header(response):
        correlation_id = getattr(g, "correlation_id", None)
        if correlation_id:
            response.headers["X-Request-ID"] = correlation_id
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
