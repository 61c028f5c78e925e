"""
Remote Translation Gateway

Wraps AWS Translate and its S3 staging bucket:
- stage_input / submit_batch / await_completion / fetch_results for batch jobs
- translate_one for the synchronous per-string fallback
- cleanup of staged input and job output

Every call to AWS goes through boto3. Errors from the batch path are raised
as StagingError, BatchJobFailed or NoResultsError so the runner can fall back.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.config import DEFAULT_POLL_SECONDS, DEFAULT_REGION
from src.exceptions import (
    BatchJobFailed,
    NoResultsError,
    StagingError,
    TranslationError,
)
from src.logger import get_logger
from src.remote.storage import REQUIRED_STORE_METHODS, S3ObjectStore
from src.translation.events import EventSink, PipelineEvent, require_sink, safe_emit
from src.translation.utils import parse_result_lines, records_to_jsonl

logger = get_logger(__name__)

REMOTE_ERRORS = (BotoCoreError, ClientError)

REQUIRED_TRANSLATE_METHODS = (
    "start_text_translation_job",
    "describe_text_translation_job",
    "translate_text",
)

# Job states reported by AWS Translate
STATUS_SUBMITTED = "SUBMITTED"
STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_COMPLETED = "COMPLETED"
STATUS_COMPLETED_WITH_ERROR = "COMPLETED_WITH_ERROR"
STATUS_FAILED = "FAILED"
STATUS_STOP_REQUESTED = "STOP_REQUESTED"
STATUS_STOPPED = "STOPPED"

SUCCESS_STATES = {STATUS_COMPLETED, STATUS_COMPLETED_WITH_ERROR}
FAILURE_STATES = {STATUS_FAILED, STATUS_STOPPED}

S3_URI_PATTERN = re.compile(r"^s3://([^/]+)/(.+)$")


@dataclass(frozen=True)
class JobHandle:
    """An in-flight batch translation job."""
    job_id: str
    job_name: str
    source_code: str
    target_code: str
    input_uri: str
    output_uri: str


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """
    Split an s3:// URI into bucket and key.

    Raises:
        ValueError: If the URI is not an s3:// URI with a key
    """
    match = S3_URI_PATTERN.match(uri or "")
    if not match:
        raise ValueError(f"Invalid S3 URI: {uri}")
    return match.group(1), match.group(2)


def _check_capabilities(obj: Any, methods, label: str) -> None:
    missing = [name for name in methods if not callable(getattr(obj, name, None))]
    if missing:
        raise TypeError(f"{label} {type(obj).__name__} is missing: {', '.join(missing)}")


def _remote_reason(error: Exception) -> str:
    if isinstance(error, ClientError):
        err = error.response.get("Error", {})
        return f"{err.get('Code', 'ClientError')}: {err.get('Message', str(error))}"
    return str(error)


def select_primary_result(keys: List[str]) -> Optional[str]:
    """
    Pick the object holding the translated lines.

    Prefers a key ending in '.out', then the first key that is not a folder
    marker or a job details file, then the first key.
    """
    if not keys:
        return None
    for key in keys:
        if key.endswith(".out"):
            return key
    for key in keys:
        if not key.endswith("/") and not key.endswith("details.json"):
            return key
    return keys[0]


class TranslationGateway:
    """AWS Translate plus S3 staging, as used by one pipeline run."""

    def __init__(
        self,
        bucket: str,
        source_code: str,
        role_arn: Optional[str] = None,
        region: str = DEFAULT_REGION,
        translate_client=None,
        store=None,
        sink: Optional[EventSink] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bucket = bucket
        self.source_code = source_code
        self.role_arn = role_arn
        self.region = region
        self.translate = translate_client or boto3.client("translate", region_name=region)
        self.store = store or S3ObjectStore(region=region)
        self.sink = require_sink(sink)
        self._sleep = sleep

        _check_capabilities(self.store, REQUIRED_STORE_METHODS, "Object store")
        _check_capabilities(self.translate, REQUIRED_TRANSLATE_METHODS, "Translate client")

        logger.info(f"Initialized translation gateway (region={region}, bucket={bucket or '-'})")

    # ------------------------------------------------------------------
    # Batch path
    # ------------------------------------------------------------------

    def stage_input(self, key: str, records: List[Dict[str, Any]]) -> str:
        """
        Upload records as JSONL and return the s3:// URI of the staged object.

        Raises:
            StagingError: If the bucket is not configured or the upload fails
        """
        if not self.bucket:
            raise StagingError("No staging bucket configured", details={"key": key})

        body = records_to_jsonl(records)
        try:
            self.store.put_text(self.bucket, key, body, "text/plain")
        except REMOTE_ERRORS + (OSError,) as e:
            raise StagingError(
                f"Failed to stage input s3://{self.bucket}/{key}: {_remote_reason(e)}",
                details={"bucket": self.bucket, "key": key},
            ) from e

        uri = f"s3://{self.bucket}/{key}"
        logger.debug(f"Staged {len(records)} record(s) to {uri}")
        return uri

    def submit_batch(self, input_uri: str, output_uri: str, source_code: Optional[str], target_code: str) -> JobHandle:
        """
        Start an asynchronous text translation job.

        source_code may be None to use the gateway's source language.

        The caller is responsible for only choosing this path when a data
        access role is configured.

        Raises:
            BatchJobFailed: If the service rejects the job
        """
        source = source_code or self.source_code
        job_name = f"i18n-{target_code}-{int(time.time() * 1000)}"
        try:
            response = self.translate.start_text_translation_job(
                JobName=job_name,
                DataAccessRoleArn=self.role_arn,
                InputDataConfig={"S3Uri": input_uri, "ContentType": "text/plain"},
                OutputDataConfig={"S3Uri": output_uri},
                SourceLanguageCode=source,
                TargetLanguageCodes=[target_code],
            )
        except REMOTE_ERRORS as e:
            reason = _remote_reason(e)
            raise BatchJobFailed(f"Batch job {job_name} could not start: {reason}", reason=reason) from e

        handle = JobHandle(
            job_id=response["JobId"],
            job_name=job_name,
            source_code=source,
            target_code=target_code,
            input_uri=input_uri,
            output_uri=output_uri,
        )
        logger.info(f"Started batch job {handle.job_id} ({job_name})")
        return handle

    def await_completion(self, handle: JobHandle, poll_interval: float = DEFAULT_POLL_SECONDS) -> Dict[str, Any]:
        """
        Poll the job until it reaches a terminal state.

        There is no deadline: a job that never finishes blocks the caller.

        Returns:
            The job properties reported by the service on completion

        Raises:
            BatchJobFailed: If the job ends FAILED or STOPPED, or cannot be described
        """
        polls = 0
        while True:
            try:
                details = self.translate.describe_text_translation_job(JobId=handle.job_id)
            except REMOTE_ERRORS as e:
                reason = _remote_reason(e)
                raise BatchJobFailed(
                    f"Batch job {handle.job_id} status unavailable: {reason}",
                    job_id=handle.job_id,
                    reason=reason,
                ) from e

            polls += 1
            properties = details.get("TextTranslationJobProperties", {})
            status = properties.get("JobStatus", "")
            safe_emit(self.sink, PipelineEvent(
                flag="tr_batch_poll",
                action="poll_status",
                message=f"Batch job status: {status}",
                data={"job_id": handle.job_id, "status": status, "poll": polls},
            ))

            if status in SUCCESS_STATES:
                if status == STATUS_COMPLETED_WITH_ERROR:
                    logger.warning(f"Batch job {handle.job_id} completed with errors: {properties.get('Message')}")
                return properties

            if status in FAILURE_STATES:
                reason = properties.get("Message") or "unknown"
                raise BatchJobFailed(
                    f"Batch translate job {handle.job_id} {status}: {reason}",
                    job_id=handle.job_id,
                    status=status,
                    reason=reason,
                )

            self._sleep(poll_interval)

    def fetch_results(self, output_uri: str) -> List[Dict[str, Any]]:
        """
        Download and parse the job output under an s3:// prefix.

        Raises:
            NoResultsError: If nothing usable was found
        """
        try:
            bucket, prefix = parse_s3_uri(output_uri)
        except ValueError as e:
            raise NoResultsError(str(e), details={"output_uri": output_uri}) from e
        prefix = prefix.rstrip("/") + "/"

        try:
            keys = self.store.list_keys(bucket, prefix)
            primary = select_primary_result(keys)
            if primary is None:
                raise NoResultsError(f"No batch outputs under {output_uri}", details={"output_uri": output_uri})
            text = self.store.get_text(bucket, primary)
        except REMOTE_ERRORS as e:
            raise NoResultsError(
                f"Failed to read batch outputs under {output_uri}: {_remote_reason(e)}",
                details={"output_uri": output_uri},
            ) from e
        except UnicodeDecodeError as e:
            raise NoResultsError(
                f"Batch output {primary} is not valid UTF-8: {e}",
                details={"output_uri": output_uri, "key": primary},
            ) from e

        records = parse_result_lines(text)
        if not records:
            raise NoResultsError(f"Batch output {primary} is empty", details={"output_uri": output_uri, "key": primary})

        logger.debug(f"Fetched {len(records)} result line(s) from s3://{bucket}/{primary}")
        return records

    # ------------------------------------------------------------------
    # Fallback path
    # ------------------------------------------------------------------

    def translate_one(self, text: Any, target_code: str) -> str:
        """
        Translate a single string synchronously.

        Raises:
            TranslationError: If the service call fails
        """
        try:
            response = self.translate.translate_text(
                Text="" if text is None else str(text),
                SourceLanguageCode=self.source_code,
                TargetLanguageCode=target_code,
            )
        except REMOTE_ERRORS as e:
            raise TranslationError(
                f"Translate call to {target_code} failed: {_remote_reason(e)}",
                code="translate_failed",
                details={"target": target_code},
            ) from e
        return response["TranslatedText"]

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def cleanup(self, input_key: Optional[str], output_prefix: Optional[str]) -> bool:
        """
        Delete the staged input and everything under the output prefix.

        Failures are logged and never raised.

        Returns:
            True if every delete succeeded
        """
        clean = True
        if not self.bucket:
            return clean

        if input_key:
            try:
                self.store.delete_key(self.bucket, input_key)
            except Exception as e:
                clean = False
                logger.warning(f"Cleanup of s3://{self.bucket}/{input_key} failed: {e}")

        if output_prefix:
            try:
                keys = self.store.list_keys(self.bucket, output_prefix)
                if keys:
                    self.store.delete_keys(self.bucket, keys)
                    logger.debug(f"Deleted {len(keys)} output object(s) under {output_prefix}")
            except Exception as e:
                clean = False
                logger.warning(f"Cleanup of s3://{self.bucket}/{output_prefix} failed: {e}")

        return clean
