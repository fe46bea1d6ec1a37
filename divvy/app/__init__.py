"""
app/__init__.py — Flask application factory.

create_app(config_name) builds a configured app; nothing is initialised at
import time, so tests can create isolated instances and Alembic can import
the models without starting a server.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure the package logger level
  3. Initialise SQLAlchemy via init_app()
  4. Register the balance blueprint under /api/v1/groups
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Serialise Decimal as string (amounts never travel as JS numbers)
  7. Add permissive CORS headers in development and testing only
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from werkzeug.exceptions import HTTPException

from divvy.config import config_by_name, validate_production_config


class DecimalJSONProvider(DefaultJSONProvider):
    """
    Serialises Decimal as str.

    Response schemas turn integer cents into Decimal("30.00"); this provider
    writes it as "30.00" (not 30.0 or 30). Keys keep the order the schemas
    dump them in.
    """

    sort_keys = False

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Unknown names fall back to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    from divvy.app.extensions import db
    db.init_app(app)

    # Import all models so SQLAlchemy's MetaData is populated for
    # db.create_all() and Alembic autogenerate.
    with app.app_context():
        from divvy.app.models import (  # noqa: F401
            expense,
            group,
            membership,
            split,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_dev_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Applies LOG_LEVEL to the app logger and to the service loggers under `divvy`."""
    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)
    logging.getLogger("divvy").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    from divvy.app.routes.balances import balances_bp

    app.register_blueprint(balances_bp, url_prefix="/api/v1/groups")


def _register_error_handlers(app: Flask) -> None:
    """
    Handlers:
      AppError      → structured JSON error envelope with its HTTP status
      HTTPException → passed through (unknown routes, wrong methods)
      Exception     → generic INTERNAL_ERROR (500); traceback logged, never returned
    """
    from divvy.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError; they let it propagate here."""
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_dev_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled only when DEBUG or TESTING is true, so a dashboard served from
    another local port can call the API with an Authorization header.
    """

    @app.after_request
    def add_cors_headers(response):
        if app.config.get("DEBUG") or app.config.get("TESTING"):
            origin = request.headers.get("Origin")
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response
