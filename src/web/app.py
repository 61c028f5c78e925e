"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from flask import Flask, jsonify

from src.logger import get_logger

from .routes.runs import runs_bp
from .routes.settings import settings_bp

logger = get_logger(__name__)


def build_app(runner_factory=None, config_file=None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False
    app.config["RUNNER_FACTORY"] = runner_factory
    app.config["CONFIG_FILE"] = config_file

    register_blueprints(app)
    register_default_routes(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(runs_bp, url_prefix="/api/runs")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")


def register_default_routes(app: Flask) -> None:
    """Register default health route and JSON error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        return jsonify({"status": "ok"})

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Unexpected error occurred"}), 500
