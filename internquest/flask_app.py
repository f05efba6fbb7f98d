"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.
"""
from __future__ import annotations
import logging
import sys
from typing import Optional

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from internquest.config import AppConfig, load_settings
from internquest.core.services import Services

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-API-Key"
CORS_ALLOW_METHODS = "POST, OPTIONS"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(config: Optional[AppConfig] = None, services: Optional[Services] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        config: Settings (default: load_settings())
        services: Collaborators (default: Firebase-backed, built from config)
    """
    cfg = config or load_settings()
    configure_logging(cfg.log_level)

    if services is None:
        from internquest.core.firebase.client import build_services
        services = build_services(cfg)

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["SERVICES"] = services
    app.json.sort_keys = False

    # Cloud Run / load balancer in front
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    # Register blueprints
    from internquest.api import callables, errors, functions, health

    app.register_blueprint(health.bp)
    app.register_blueprint(callables.bp)
    app.register_blueprint(functions.bp)

    # Register error handlers
    errors.register_error_handlers(app)

    _register_middleware(app, cfg)

    logger.info(
        "InternQuest functions ready (project=%s, region=%s, emulator=%s)",
        cfg.project_id or "-", cfg.region, cfg.emulator,
    )
    return app


def configure_logging(level: str = "INFO") -> None:
    """Send application logs to stderr at the configured level."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))


def _register_middleware(app: Flask, cfg: AppConfig):
    """Register response middleware."""

    @app.after_request
    def add_cors_headers(response):
        """CORS headers on every response, including errors and pre-flight."""
        response.headers["Access-Control-Allow-Origin"] = cfg.cors_allow_origin
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
        return response
