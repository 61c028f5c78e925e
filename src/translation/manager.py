"""
Translation Manager Module

Main TranslationRunner class that coordinates a bulk translation run:
- Discover module directories with a source bundle
- For every module x target locale: build payload, translate (batch job
  with per-string fallback), rebuild, validate, write and clean up
- Track global progress and keep going when a single pair fails
"""

import secrets
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from src.config import RunnerSettings
from src.exceptions import (
    BatchFallbackError,
    DiscoveryError,
    TranslationError,
    ValidationError,
)
from src.language_codes import LocaleDescriptor
from src.logger import get_logger
from src.project.generator import (
    bundle_output_path,
    ensure_job_dir,
    job_folder_name,
    read_bundle,
    write_bundle,
)
from src.project.scanner import ModuleInfo, discover_modules
from src.remote.gateway import TranslationGateway

from src.translation.events import EventSink, PipelineEvent, require_sink, safe_emit
from src.translation.processor import map_batch_results, merge_translations, translate_per_string
from src.translation.progress import PairOutcome, RunProgress, RunSummary
from src.translation.utils import build_records, flatten_json, unflatten_json
from src.translation.validator import diff_keys_and_placeholders

logger = get_logger(__name__)

STRATEGY_BATCH = "batch"
STRATEGY_FALLBACK = "fallback"

# Operations the runner calls on its gateway
REQUIRED_GATEWAY_METHODS = (
    "stage_input",
    "submit_batch",
    "await_completion",
    "fetch_results",
    "translate_one",
    "cleanup",
)


def _join_key(parts: List[str]) -> str:
    return "/".join(part.strip("/") for part in parts if part)


class TranslationRunner:
    """
    Runs the bulk translation pipeline once.

    Features:
    - Batch translation through a remote job when a data access role is set
    - Per-string fallback when batch is disabled or fails for a pair
    - Key and placeholder validation before anything is written
    - Progress and stage events reported to an injected event sink
    """

    def __init__(
        self,
        settings: Optional[RunnerSettings] = None,
        gateway=None,
        sink: Optional[EventSink] = None,
        now: Optional[datetime] = None,
        cwd: Optional[Path] = None,
    ):
        """
        Initialize the runner.

        Args:
            settings: Effective settings (loaded from config if None)
            gateway: Remote translation gateway (built from settings if None)
            sink: Event sink for stage events (events are dropped if None)
            now: Run timestamp, names the job directory
            cwd: Directory where default i18n base dirs are looked up
        """
        self.settings = settings or RunnerSettings.from_config()
        self.sink = require_sink(sink)
        self.now = now or datetime.now()
        self.ts_folder = job_folder_name(self.now)
        self.cwd = cwd

        self.gateway = gateway or TranslationGateway(
            bucket=self.settings.bucket,
            source_code=self.settings.source.service_code,
            role_arn=self.settings.role_arn,
            region=self.settings.region,
            sink=self.sink,
        )
        missing = [name for name in REQUIRED_GATEWAY_METHODS if not callable(getattr(self.gateway, name, None))]
        if missing:
            raise TypeError(f"Gateway {type(self.gateway).__name__} is missing: {', '.join(missing)}")

        self.progress = RunProgress()
        self.summary = RunSummary(progress=self.progress)

        self._log("tr_runner_start", "init", "Runner init", self.settings.describe())

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    def _log(self, flag: str, action: str, message: str, data: Optional[Dict[str, Any]] = None, critical: bool = False):
        safe_emit(self.sink, PipelineEvent(
            flag=flag,
            action=action,
            message=message,
            data=dict(data or {}),
            critical=critical,
        ))

    @contextmanager
    def _stage(self, start_flag: str, end_flag: str, action: str, message_start: str, message_end: str,
               data: Optional[Dict[str, Any]] = None):
        """Emit an event before a stage and, if it succeeds, after it."""
        self._log(start_flag, action, message_start, data)
        yield
        self._log(end_flag, action, message_end, data)

    def _progress_tick(self, **extra):
        self._log(
            "tr_progress",
            "global",
            f"Global progress: {self.progress.describe()}",
            {
                "completed": self.progress.completed_pairs,
                "total": self.progress.total_pairs,
                "percent": self.progress.percent,
                **extra,
            },
        )

    # ------------------------------------------------------------------
    # Remote and local locations
    # ------------------------------------------------------------------

    def _staging_locations(self, module_name: str, folder_code: str) -> Tuple[str, str]:
        """
        Input key and output prefix for one pair's batch job.

        Both share one random suffix, so two runs started in the same second
        never read or delete each other's objects.
        """
        uid = secrets.token_hex(8)
        input_parts = [self.settings.input_prefix, self.ts_folder, module_name, folder_code, f"{uid}.jsonl"]
        output_parts = [self.settings.output_prefix, self.ts_folder, module_name, folder_code, uid]
        return _join_key(input_parts), _join_key(output_parts) + "/"

    # ------------------------------------------------------------------
    # Run stages
    # ------------------------------------------------------------------

    def ensure_job_dir(self) -> Path:
        job_dir = Path(self.settings.output_root) / self.ts_folder
        with self._stage("tr_job_dir_start", "tr_job_dir_end", "mkdir",
                         f"Ensuring job dir: {job_dir}", "Job dir ready", {"job": str(job_dir)}):
            return ensure_job_dir(self.settings.output_root, self.ts_folder)

    def scan_all_modules(self) -> List[ModuleInfo]:
        """
        Discover modules across all base directories.

        Raises:
            DiscoveryError: If no base directory exists
        """
        hint = str(self.settings.i18n_base_dir) if self.settings.i18n_base_dir else "auto"
        self._log("tr_scan_start", "scan", "Scanning base dirs", {"hint": hint})

        modules = discover_modules(
            self.settings.i18n_base_dir,
            source_code=self.settings.source.folder_code,
            cwd=self.cwd,
            seed_demo=self.settings.simulate_i18n,
        )

        self._log(
            "tr_scan_found",
            "scan",
            f"Found {len(modules)} module(s) with {self.settings.source.file_name}",
            {"files": [f"/{m.base_dir.name}/{m.module_name}/{m.source_file.name}" for m in modules]},
        )
        self._log("tr_scan_end", "scan", "Scanning completed",
                  {"base_dirs": sorted({str(m.base_dir) for m in modules})})
        return modules

    def build_payload(self, source_file: Path) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """
        Read and flatten a source bundle.

        Returns:
            Tuple of (flat source bundle, ordered {key, text} records)

        Raises:
            ReadError: If the source bundle cannot be read
        """
        with self._stage("tr_payload_build_start", "tr_payload_build_end", "flatten",
                         f"Flattening {source_file} -> JSONL", "Payload built",
                         {"source_file": str(source_file)}):
            flat_source = flatten_json(read_bundle(source_file))
            records = build_records(flat_source)
        return flat_source, records

    def _translate_batch(self, module_name: str, target: LocaleDescriptor, records: List[Dict[str, Any]],
                         staged: Dict[str, Optional[str]]) -> Dict[str, str]:
        """
        Stage input, run a batch job and map its results to the source keys.

        The staged input key and output prefix are recorded in staged so
        the caller can clean up whatever happened.

        Raises:
            BatchFallbackError: If any batch step fails
        """
        folder = target.folder_code
        input_key, output_prefix = self._staging_locations(module_name, folder)
        output_uri = f"s3://{self.settings.bucket}/{output_prefix}"
        staged["output_prefix"] = output_prefix

        with self._stage("tr_s3_upload_start", "tr_s3_upload_end", "s3_put",
                         f"Uploading input JSONL to s3://{self.settings.bucket}/{input_key}", "Input uploaded",
                         {"bucket": self.settings.bucket, "key": input_key}):
            staged["input_key"] = input_key
            input_uri = self.gateway.stage_input(input_key, records)

        batch_data = {
            "module_name": module_name,
            "target_folder": folder,
            "input_uri": input_uri,
            "output_uri": output_uri,
            "source": self.settings.source.service_code,
            "target": target.service_code,
        }
        with self._stage("tr_batch_start", "tr_batch_started", "batch_start",
                         "Starting batch translation", "Batch started", batch_data):
            handle = self.gateway.submit_batch(input_uri, output_uri, self.settings.source.service_code,
                                               target.service_code)

        with self._stage("tr_batch_wait", "tr_batch_done", "batch_wait",
                         f"Waiting for job {handle.job_id}", "Batch job completed", {"job_id": handle.job_id}):
            self.gateway.await_completion(handle, self.settings.poll_seconds)

        with self._stage("tr_batch_fetch", "tr_batch_end", "batch_fetch",
                         "Fetching batch results", "Batch results fetched", {"output_uri": output_uri}):
            results = self.gateway.fetch_results(output_uri)
            return map_batch_results(records, results)

    def _translate_fallback(self, module_name: str, target: LocaleDescriptor,
                            records: List[Dict[str, Any]]) -> Dict[str, str]:
        """
        Translate every record with one synchronous call each.

        Raises:
            TranslationError: If any call fails
        """
        with self._stage("tr_sync_start", "tr_sync_end", "sync_translate",
                         "Translating per-string", "Per-string complete",
                         {"module_name": module_name, "target_folder": target.folder_code, "count": len(records)}):
            return translate_per_string(records, self.gateway.translate_one, target.service_code)

    def translate_module_locale(self, module: ModuleInfo, target: LocaleDescriptor, job_dir: Path) -> Tuple[Path, str]:
        """
        Run every stage for one module/locale pair.

        Returns:
            Tuple of (written file path, strategy used)

        Raises:
            TranslationError: If the pair failed (read, translate, validate or write)
        """
        module_name = module.module_name
        folder = target.folder_code
        pair = {"module_name": module_name, "target_folder": folder}

        flat_source, records = self.build_payload(module.source_file)

        staged: Dict[str, Optional[str]] = {"input_key": None, "output_prefix": None}
        try:
            translated = None
            strategy = STRATEGY_FALLBACK
            if self.settings.batch_enabled and records:
                try:
                    translated = self._translate_batch(module_name, target, records, staged)
                    strategy = STRATEGY_BATCH
                except BatchFallbackError as e:
                    # Recovered below, so not critical
                    self._log(
                        "tr_error",
                        "batch_fail",
                        f"Batch failed; falling back to per-string. {e}",
                        {**pair, "code": e.code, "details": e.details},
                    )

            if translated is None:
                translated = self._translate_fallback(module_name, target, records)

            translated_flat = merge_translations(flat_source, translated)

            with self._stage("tr_convert_start", "tr_convert_end", "unflatten",
                             "Converting flat -> nested", "Converted nested", pair):
                nested = unflatten_json(translated_flat)

            self._log("tr_validate_start", "validate", "Validating", pair)
            report = diff_keys_and_placeholders(flat_source, translated_flat)
            if not report.ok:
                self._log("tr_validate_fail", "validate", "Validation failed", {**pair, "errors": report.errors})
                raise ValidationError(f"Validation failed for {module_name}/{folder}: {report.errors}",
                                      errors=report.errors)
            self._log("tr_validate_pass", "validate", "Validation passed", pair)

            out_path = bundle_output_path(job_dir, module_name, folder)
            with self._stage("tr_write_start", "tr_write_end", "write_file",
                             f"Writing {out_path}", "File written", {"out_path": str(out_path)}):
                write_bundle(out_path, nested)

            return out_path, strategy
        finally:
            if staged["input_key"] or staged["output_prefix"]:
                self._cleanup(staged)

    def _cleanup(self, staged: Dict[str, Optional[str]]):
        with self._stage("tr_cleanup_start", "tr_cleanup_end", "s3_cleanup",
                         "Cleaning up S3 input & output", "S3 cleanup complete", dict(staged)):
            if not self.gateway.cleanup(staged["input_key"], staged["output_prefix"]):
                self._log("tr_cleanup_warn", "s3_cleanup", "S3 cleanup incomplete", dict(staged))

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run_pipeline(self) -> Path:
        """
        Translate every module into every target locale.

        Pair failures are recorded and the run continues, so a normal
        return does not mean every pair succeeded; see self.summary.

        Returns:
            The job directory holding the written bundles

        Raises:
            DiscoveryError: If no i18n base directory exists
        """
        try:
            modules = self.scan_all_modules()
        except DiscoveryError as e:
            self._log("tr_error", "fatal", str(e), e.details, critical=True)
            raise

        job_dir = self.ensure_job_dir()
        self.summary.job_dir = str(job_dir)

        targets = list(self.settings.targets)
        self.progress.total_pairs = len(modules) * len(targets)
        self.progress.completed_pairs = 0
        self._progress_tick(stage="init")

        self._log(
            "tr_runner_start",
            "announce",
            f"Runner will process (module/{self.settings.source.folder_code}) -> all target locales",
            {"total_modules": len(modules), "targets": [t.folder_code for t in targets]},
        )

        for module in modules:
            for target in targets:
                info = {
                    "module_name": module.module_name,
                    "source_file": str(module.source_file),
                    "target_folder": target.folder_code,
                    "target_service": target.service_code,
                }
                self._log("tr_runner_start", "module_locale_begin",
                          f"Begin {module.module_name}/{target.folder_code}", info)
                try:
                    saved, strategy = self.translate_module_locale(module, target, job_dir)
                    self.summary.outcomes.append(PairOutcome(
                        module_name=module.module_name,
                        folder_code=target.folder_code,
                        success=True,
                        strategy=strategy,
                        output_path=str(saved),
                    ))
                    self._log("tr_runner_end", "module_locale_end",
                              f"Completed {module.module_name}/{target.folder_code}",
                              {**info, "saved": str(saved), "strategy": strategy})
                except Exception as e:
                    if not isinstance(e, TranslationError):
                        logger.exception(f"Unexpected error in {module.module_name}/{target.folder_code}")
                    code = getattr(e, "code", None) or type(e).__name__
                    self.summary.outcomes.append(PairOutcome(
                        module_name=module.module_name,
                        folder_code=target.folder_code,
                        success=False,
                        error=str(e),
                        error_code=code,
                    ))
                    self._log("tr_error", "module_locale_error", str(e), {**info, "code": code}, critical=True)
                finally:
                    self.progress.tick()
                    self._progress_tick(module_name=module.module_name, target_folder=target.folder_code)

        self._log("tr_runner_end", "done", "All modules & locales processed", {
            "job_dir": str(job_dir),
            "total": self.progress.total_pairs,
            "completed": self.progress.completed_pairs,
            "succeeded": len(self.summary.succeeded),
            "failed": len(self.summary.failed),
        })
        logger.info(
            f"Run finished: {len(self.summary.succeeded)} succeeded, "
            f"{len(self.summary.failed)} failed, output in {job_dir}"
        )
        return job_dir
