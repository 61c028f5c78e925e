"""Settings API routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

import src.config as config
from src.logger import get_logger, LOG_FILE, _clear_log_mode_cache

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

LOG_MODES = ("off", "info", "debug")


def _config_file():
    return current_app.config.get("CONFIG_FILE") or config.CONFIG_FILE


@settings_bp.get("/")
def get_settings():
    """Return the effective configuration with secrets masked."""
    current_config = config.load_config(_config_file())
    source, targets = config.get_locales(current_config)
    return jsonify({
        "config": config.masked_config(current_config),
        "meta": {
            "source_locale": source.to_dict(),
            "target_locales": [t.to_dict() for t in targets],
            "batch_enabled": config.RunnerSettings.from_config(current_config).batch_enabled,
            "log_file": str(LOG_FILE),
        },
    })


@settings_bp.put("/log-mode")
def update_log_mode():
    """Persist a new log mode and apply it to existing loggers."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    log_mode = data.get("log_mode")
    if log_mode not in LOG_MODES:
        return jsonify({"error": f"log_mode must be one of: {', '.join(LOG_MODES)}"}), 400

    try:
        config.update_config_file({"log_mode": log_mode}, _config_file())
    except OSError as e:
        logger.error("Failed to save log mode: %s", e)
        return jsonify({"error": "Failed to save configuration"}), 500

    _clear_log_mode_cache()
    logger.info("Log mode set to %s", log_mode)
    return jsonify({"log_mode": log_mode})
