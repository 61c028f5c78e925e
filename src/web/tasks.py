"""
Background task helpers for long-running pipeline runs.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Optional

from src.config import RunnerSettings, load_config
from src.exceptions import TranslationError
from src.logger import get_logger
from src.translation.events import (
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    RecordingEventSink,
)
from src.translation.manager import TranslationRunner

logger = get_logger(__name__)

# Builds a runner from (settings, sink); replaced in tests
RunnerFactory = Callable[[RunnerSettings, Any], TranslationRunner]


def default_runner_factory(settings: RunnerSettings, sink) -> TranslationRunner:
    return TranslationRunner(settings=settings, sink=sink)


@dataclass
class RunJob:
    """In-memory representation of a background pipeline run."""

    job_id: str
    options: Dict[str, Any] = field(default_factory=dict)
    state: str = "pending"  # pending|running|completed|failed
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    progress: Dict[str, Any] = field(default_factory=dict)
    summary: Optional[Dict[str, Any]] = None
    job_dir: Optional[str] = None
    error: Optional[str] = None
    last_update: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_jobs: Dict[str, RunJob] = {}
_sinks: Dict[str, RecordingEventSink] = {}
_threads: Dict[str, threading.Thread] = {}
_jobs_lock = threading.Lock()
_JOB_RETENTION_SECONDS = 600  # Retain job info for 10 minutes after completion


def create_run_job(
    force_fallback: Optional[bool] = None,
    base_dir: Optional[str] = None,
    output_root: Optional[str] = None,
    runner_factory: Optional[RunnerFactory] = None,
    config: Optional[Dict[str, Any]] = None,
) -> RunJob:
    """
    Create and launch a pipeline run in a background thread.

    Args:
        force_fallback: Force per-string translation (config default if None)
        base_dir: i18n base directory override
        output_root: Output root override
        runner_factory: Builds the runner (default: real AWS-backed runner)
        config: Configuration dict (loaded if None)

    Returns:
        RunJob for the new run (already registered and running in background).
    """
    settings = RunnerSettings.from_config(
        config if config is not None else load_config(),
        force_fallback=force_fallback,
        i18n_base_dir=base_dir,
        output_root=output_root,
    )
    job = RunJob(
        job_id=uuid.uuid4().hex,
        options={
            "force_fallback": settings.force_fallback,
            "base_dir": str(settings.i18n_base_dir) if settings.i18n_base_dir else None,
            "output_root": str(settings.output_root),
        },
    )
    recorder = RecordingEventSink()

    thread = threading.Thread(
        target=_run_job,
        args=(job, settings, recorder, runner_factory or default_runner_factory),
        name=f"translation-run-{job.job_id}",
        daemon=True,
    )
    with _jobs_lock:
        _cleanup_jobs_locked()
        _jobs[job.job_id] = job
        _sinks[job.job_id] = recorder
        _threads[job.job_id] = thread

    thread.start()
    logger.info("Translation run %s started (options=%s)", job.job_id, job.options)
    return job


def get_job(job_id: str) -> Optional[RunJob]:
    """Fetch a job by ID (if still retained)."""
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job and job.finished_at and (time.time() - job.finished_at) > _JOB_RETENTION_SECONDS:
            _forget_locked(job_id)
            return None
        return job


def get_job_events(job_id: str):
    """Recorded events of a job, or None if the job is unknown."""
    with _jobs_lock:
        recorder = _sinks.get(job_id)
    if recorder is None:
        return None
    return recorder.snapshot()


def wait_for_job(job_id: str, timeout: Optional[float] = None) -> Optional[RunJob]:
    """Block until a job's thread has finished (or timeout expires)."""
    with _jobs_lock:
        thread = _threads.get(job_id)
    if thread is not None:
        thread.join(timeout)
    return get_job(job_id)


def serialize_job(job: RunJob) -> Dict[str, Any]:
    """Convert RunJob into JSON-safe dict."""
    with _jobs_lock:
        return job.to_dict()


class _ProgressSink(EventSink):
    """Records events and mirrors progress events onto the job."""

    def __init__(self, job: RunJob, recorder: RecordingEventSink):
        self.job = job
        self.recorder = recorder

    def emit(self, event) -> None:
        self.recorder.emit(event)
        if event.flag == "tr_progress":
            with _jobs_lock:
                self.job.progress = dict(event.data)
                self.job.last_update = time.time()


def _run_job(job: RunJob, settings: RunnerSettings, recorder: RecordingEventSink, runner_factory: RunnerFactory):
    """Worker function executed in a background thread."""
    with _jobs_lock:
        job.state = "running"
        job.started_at = time.time()
        job.last_update = job.started_at

    sink = CompositeEventSink([_ProgressSink(job, recorder), LoggingEventSink()])
    try:
        runner = runner_factory(settings, sink)
        job_dir = runner.run_pipeline()
        with _jobs_lock:
            job.job_dir = str(job_dir)
            job.summary = runner.summary.to_dict()
            job.state = "completed"
        logger.info(
            "Translation run %s finished (succeeded=%s, failed=%s)",
            job.job_id,
            len(runner.summary.succeeded),
            len(runner.summary.failed),
        )
    except TranslationError as exc:
        with _jobs_lock:
            job.state = "failed"
            job.error = f"{type(exc).__name__}: {exc}"
        logger.error("✗ Translation run %s failed: %s", job.job_id, exc)
    except Exception as exc:
        with _jobs_lock:
            job.state = "failed"
            job.error = f"{type(exc).__name__}: {exc}"
        logger.exception("✗ Translation run %s crashed: %s", job.job_id, exc)
    finally:
        with _jobs_lock:
            job.finished_at = time.time()
            job.last_update = job.finished_at


def _forget_locked(job_id: str):
    _jobs.pop(job_id, None)
    _sinks.pop(job_id, None)
    _threads.pop(job_id, None)


def _cleanup_jobs_locked():
    """Remove completed jobs that exceeded retention period (call with lock held)."""
    now = time.time()
    expired = [
        job_id
        for job_id, job in _jobs.items()
        if job.finished_at and (now - job.finished_at) > _JOB_RETENTION_SECONDS
    ]
    for job_id in expired:
        _forget_locked(job_id)
