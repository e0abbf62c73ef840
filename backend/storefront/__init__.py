# backend/storefront/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate, configure_sqlite_transactions


def _select_builders(app: Flask) -> None:
    """Choose the order/booking builders once, for the lifetime of the app."""
    from .services.booking_service import build_booking_builder
    from .services.concurrency import resolve_write_mode
    from .services.order_service import build_order_builder

    mode = resolve_write_mode(app.config["ORDER_WRITE_MODE"], db.engine)
    app.extensions["order_write_mode"] = mode
    app.extensions["order_builder"] = build_order_builder(mode)
    app.extensions["booking_builder"] = build_booking_builder(mode)
    app.logger.info("Order write mode: %s (configured %s)", mode, app.config["ORDER_WRITE_MODE"])


def create_app(config_overrides: dict | None = None) -> Flask:
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

    from .services.media_service import LocalMediaStore
    from .services.notification_service import NotificationDispatcher

    app.extensions["notifier"] = NotificationDispatcher()
    app.extensions["media_store"] = LocalMediaStore(app.config["MEDIA_ROOT"], app.config["MEDIA_BASE_URL"])

    with app.app_context():
        configure_sqlite_transactions(db.engine)
        _select_builders(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.orders import orders_bp
    from .routes.bookings import bookings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(bookings_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin.rstrip("/") == app.config["CLIENT_URL"].rstrip("/"):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, store-id, store-url"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
