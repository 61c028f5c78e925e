"""
Shared fixtures for the translation runner tests.

Provides an in-memory object store, a fake AWS Translate client that can
simulate batch jobs, and helpers to lay out temporary i18n trees.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest
from botocore.exceptions import ClientError

from src.config import RunnerSettings
from src.language_codes import LocaleDescriptor
from src.remote.gateway import TranslationGateway, parse_s3_uri
from src.translation.events import RecordingEventSink
from src.translation.manager import TranslationRunner
from src.translation.utils import parse_result_lines

RUN_TIME = datetime(2024, 5, 1, 12, 30, 0)
BUCKET = "test-bucket"
ROLE_ARN = "arn:aws:iam::123456789012:role/TranslateDataAccessRole"


def client_error(code: str = "ServiceUnavailable", message: str = "service down", operation: str = "Op") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class InMemoryObjectStore:
    """Object store double keeping objects in a dict."""

    def __init__(self):
        self.objects: Dict[tuple, str] = {}
        self.fail_put = False
        self.fail_delete = False
        self.deleted: List[str] = []

    def put_text(self, bucket, key, body, content_type="text/plain"):
        if self.fail_put:
            raise client_error("AccessDenied", "put denied", "PutObject")
        self.objects[(bucket, key)] = body

    def list_keys(self, bucket, prefix):
        return [key for (b, key) in self.objects if b == bucket and key.startswith(prefix)]

    def get_text(self, bucket, key):
        return self.objects[(bucket, key)]

    def delete_key(self, bucket, key):
        if self.fail_delete:
            raise client_error("AccessDenied", "delete denied", "DeleteObject")
        self.objects.pop((bucket, key), None)
        self.deleted.append(key)

    def delete_keys(self, bucket, keys):
        for key in keys:
            self.delete_key(bucket, key)


class FakeTranslateClient:
    """
    Stands in for boto3's translate client.

    translate_text uses a lookup table, falling back to "<target>:<text>".
    Batch jobs walk through `statuses`; when a job first reports a
    completed state, its translated output is written to the store the way
    the remote service would (unless write_output is False).
    """

    def __init__(self, store: InMemoryObjectStore, statuses: Iterable[str] = ("SUBMITTED", "IN_PROGRESS", "COMPLETED")):
        self.store = store
        self.statuses = list(statuses)
        self.table: Dict[tuple, str] = {}
        self.fail_texts: set = set()
        self.fail_targets: set = set()
        self.fail_start = False
        self.write_output = True
        self.output_transform: Optional[Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]] = None
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.translate_calls: List[tuple] = []
        self.describe_calls = 0

    def translate_text(self, Text, SourceLanguageCode, TargetLanguageCode):
        self.translate_calls.append((Text, TargetLanguageCode))
        if TargetLanguageCode in self.fail_targets or Text in self.fail_texts:
            raise client_error("ServiceUnavailable", "translate down", "TranslateText")
        translated = self.table.get((Text, TargetLanguageCode), f"{TargetLanguageCode}:{Text}")
        return {"TranslatedText": translated, "SourceLanguageCode": SourceLanguageCode,
                "TargetLanguageCode": TargetLanguageCode}

    def start_text_translation_job(self, **params):
        if self.fail_start:
            raise client_error("AccessDeniedException", "role not assumable", "StartTextTranslationJob")
        job_id = f"job-{len(self.jobs) + 1}"
        self.jobs[job_id] = {"params": params, "polls": 0, "written": False}
        return {"JobId": job_id, "JobStatus": "SUBMITTED"}

    def describe_text_translation_job(self, JobId):
        self.describe_calls += 1
        job = self.jobs[JobId]
        index = min(job["polls"], len(self.statuses) - 1)
        status = self.statuses[index]
        job["polls"] += 1
        if status in ("COMPLETED", "COMPLETED_WITH_ERROR") and not job["written"] and self.write_output:
            self._write_output(JobId, job)
        properties = {"JobId": JobId, "JobStatus": status}
        if status in ("FAILED", "STOPPED"):
            properties["Message"] = "remote job broke"
        return {"TextTranslationJobProperties": properties}

    def _write_output(self, job_id, job):
        params = job["params"]
        in_bucket, in_key = parse_s3_uri(params["InputDataConfig"]["S3Uri"])
        out_bucket, out_prefix = parse_s3_uri(params["OutputDataConfig"]["S3Uri"])
        target = params["TargetLanguageCodes"][0]
        records = parse_result_lines(self.store.get_text(in_bucket, in_key))
        translated = [
            {"key": r["key"], "text": self.table.get((r["text"], target), f"{target}:{r['text']}")}
            for r in records
        ]
        if self.output_transform:
            translated = self.output_transform(translated)
        body = "\n".join(json.dumps(r, ensure_ascii=False) for r in translated)
        self.store.put_text(out_bucket, f"{out_prefix.rstrip('/')}/{job_id}/{target}.input.jsonl.out", body)
        self.store.put_text(out_bucket, f"{out_prefix.rstrip('/')}/{job_id}/details.json", "{}")
        job["written"] = True


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def translate_client(store) -> FakeTranslateClient:
    return FakeTranslateClient(store)


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_gateway(store, translate_client, sink, sleeps):
    def _make(role_arn: Optional[str] = ROLE_ARN, bucket: str = BUCKET) -> TranslationGateway:
        return TranslationGateway(
            bucket=bucket,
            source_code="en",
            role_arn=role_arn,
            translate_client=translate_client,
            store=store,
            sink=sink,
            sleep=sleeps.append,
        )
    return _make


def write_module(base_dir: Path, module_name: str, bundle: Any, source_code: str = "en") -> Path:
    """Write a source bundle for a module and return its path."""
    module_dir = base_dir / module_name
    module_dir.mkdir(parents=True, exist_ok=True)
    source_file = module_dir / f"{source_code}.json"
    if isinstance(bundle, str):
        source_file.write_text(bundle, encoding="utf-8")
    else:
        source_file.write_text(json.dumps(bundle, ensure_ascii=False), encoding="utf-8")
    return source_file


@pytest.fixture
def i18n_dir(tmp_path) -> Path:
    base = tmp_path / "i18n"
    base.mkdir()
    return base


@pytest.fixture
def make_settings(tmp_path, i18n_dir):
    def _make(
        targets: Iterable[LocaleDescriptor] = (LocaleDescriptor("vi", "vi", "Vietnamese"),),
        role_arn: Optional[str] = None,
        force_fallback: bool = False,
        **overrides,
    ) -> RunnerSettings:
        values = dict(
            region="us-east-1",
            bucket=BUCKET,
            input_prefix="translations/input",
            output_prefix="translations/output",
            role_arn=role_arn,
            output_root=tmp_path / "jobs",
            i18n_base_dir=i18n_dir,
            force_fallback=force_fallback,
            poll_seconds=0.01,
            simulate_i18n=False,
            source=LocaleDescriptor("en", "en", "English"),
            targets=tuple(targets),
        )
        values.update(overrides)
        return RunnerSettings(**values)
    return _make


@pytest.fixture
def make_runner(make_settings, make_gateway, sink, tmp_path):
    def _make(settings: Optional[RunnerSettings] = None, **settings_kwargs) -> TranslationRunner:
        settings = settings or make_settings(**settings_kwargs)
        gateway = make_gateway(role_arn=settings.role_arn)
        return TranslationRunner(settings=settings, gateway=gateway, sink=sink, now=RUN_TIME, cwd=tmp_path)
    return _make


def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
