"""Pipeline run API routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

import src.config as config
from src.logger import get_logger
from src.web.tasks import create_run_job, get_job, get_job_events, serialize_job

runs_bp = Blueprint("runs", __name__)
logger = get_logger(__name__)


@runs_bp.post("/")
def start_run():
    """Start a pipeline run in the background."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}

    force_fallback = data.get("force_fallback")
    if force_fallback is not None and not isinstance(force_fallback, bool):
        return jsonify({"error": "force_fallback must be a boolean"}), 400

    for field_name in ("base_dir", "output_root"):
        value = data.get(field_name)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            return jsonify({"error": f"{field_name} must be a non-empty string"}), 400

    job = create_run_job(
        force_fallback=force_fallback,
        base_dir=data.get("base_dir"),
        output_root=data.get("output_root"),
        runner_factory=current_app.config.get("RUNNER_FACTORY"),
        config=config.load_config(current_app.config.get("CONFIG_FILE") or config.CONFIG_FILE),
    )
    return jsonify({"job": serialize_job(job)}), 202


@runs_bp.get("/<job_id>")
def get_run(job_id: str):
    """Return the state, progress and summary of a run."""
    job = get_job(job_id)
    if not job:
        logger.debug("Run %s not found", job_id)
        return jsonify({"error": "Run not found"}), 404
    return jsonify({"job": serialize_job(job)})


@runs_bp.get("/<job_id>/events")
def get_run_events(job_id: str):
    """Return the events recorded for a run."""
    events = get_job_events(job_id)
    if events is None:
        return jsonify({"error": "Run not found"}), 404

    if request.args.get("critical") == "1":
        events = [event for event in events if event["critical"]]
    return jsonify({"job_id": job_id, "events": events})
