"""Tests for the AWS Translate / S3 gateway."""

import io
import json

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from conftest import BUCKET, ROLE_ARN, client_error
from src.exceptions import BatchJobFailed, NoResultsError, StagingError, TranslationError
from src.remote.gateway import (
    JobHandle,
    TranslationGateway,
    parse_s3_uri,
    select_primary_result,
)
from src.remote.storage import S3ObjectStore


def _handle(job_id="job-1", output_uri=f"s3://{BUCKET}/out/"):
    return JobHandle(
        job_id=job_id,
        job_name="i18n-vi-1",
        source_code="en",
        target_code="vi",
        input_uri=f"s3://{BUCKET}/in/x.jsonl",
        output_uri=output_uri,
    )


class TestHelpers:
    """Test cases for URI parsing and result selection."""

    def test_parse_s3_uri(self):
        assert parse_s3_uri("s3://bucket/a/b/c.jsonl") == ("bucket", "a/b/c.jsonl")

    @pytest.mark.parametrize("uri", ["", "bucket/key", "s3://bucket", "https://bucket/key"])
    def test_parse_s3_uri_rejects_invalid(self, uri):
        with pytest.raises(ValueError):
            parse_s3_uri(uri)

    def test_prefers_out_file(self):
        keys = ["out/job/details.json", "out/job/vi.input.jsonl.out", "out/job/other.txt"]
        assert select_primary_result(keys) == "out/job/vi.input.jsonl.out"

    def test_skips_markers_and_details(self):
        keys = ["out/job/", "out/job/details.json", "out/job/result.txt"]
        assert select_primary_result(keys) == "out/job/result.txt"

    def test_falls_back_to_first_key(self):
        assert select_primary_result(["out/job/", "out/job/details.json"]) == "out/job/"

    def test_no_keys(self):
        assert select_primary_result([]) is None


class TestConstruction:
    """Test cases for gateway construction."""

    def test_store_missing_capabilities(self, translate_client, sink):
        with pytest.raises(TypeError):
            TranslationGateway(bucket=BUCKET, source_code="en", translate_client=translate_client,
                               store=object(), sink=sink)

    def test_translate_client_missing_capabilities(self, store, sink):
        with pytest.raises(TypeError):
            TranslationGateway(bucket=BUCKET, source_code="en", translate_client=object(),
                               store=store, sink=sink)

    def test_sink_missing_emit(self, store, translate_client):
        with pytest.raises(TypeError):
            TranslationGateway(bucket=BUCKET, source_code="en", translate_client=translate_client,
                               store=store, sink=object())


class TestStageInput:
    """Test cases for stage_input."""

    def test_uploads_jsonl(self, make_gateway, store):
        gateway = make_gateway()
        uri = gateway.stage_input("in/auth/vi.jsonl", [{"key": "a", "text": "Hello"}, {"key": "b", "text": "Bye"}])

        assert uri == f"s3://{BUCKET}/in/auth/vi.jsonl"
        body = store.objects[(BUCKET, "in/auth/vi.jsonl")]
        assert [json.loads(line) for line in body.splitlines()] == [
            {"key": "a", "text": "Hello"},
            {"key": "b", "text": "Bye"},
        ]

    def test_no_bucket(self, make_gateway):
        gateway = make_gateway(bucket="")
        with pytest.raises(StagingError) as exc_info:
            gateway.stage_input("in/x.jsonl", [{"key": "a", "text": "x"}])
        assert exc_info.value.code == "staging_failed"

    def test_upload_rejected(self, make_gateway, store):
        store.fail_put = True
        with pytest.raises(StagingError, match="AccessDenied"):
            make_gateway().stage_input("in/x.jsonl", [{"key": "a", "text": "x"}])


class TestSubmitBatch:
    """Test cases for submit_batch."""

    def test_starts_job(self, make_gateway, translate_client):
        handle = make_gateway().submit_batch(f"s3://{BUCKET}/in/x.jsonl", f"s3://{BUCKET}/out/", "en", "vi")

        assert handle.job_id == "job-1"
        assert handle.job_name.startswith("i18n-vi-")
        assert handle.source_code == "en"
        params = translate_client.jobs["job-1"]["params"]
        assert params["DataAccessRoleArn"] == ROLE_ARN
        assert params["TargetLanguageCodes"] == ["vi"]
        assert params["InputDataConfig"]["ContentType"] == "text/plain"

    def test_source_language_is_passed_before_target(self, make_gateway, translate_client):
        handle = make_gateway().submit_batch(f"s3://{BUCKET}/in/x.jsonl", f"s3://{BUCKET}/out/", "fr", "vi")

        params = translate_client.jobs["job-1"]["params"]
        assert params["SourceLanguageCode"] == "fr"
        assert params["TargetLanguageCodes"] == ["vi"]
        assert (handle.source_code, handle.target_code) == ("fr", "vi")

    def test_missing_source_uses_gateway_default(self, make_gateway, translate_client):
        handle = make_gateway().submit_batch(f"s3://{BUCKET}/in/x.jsonl", f"s3://{BUCKET}/out/", None, "vi")
        assert handle.source_code == "en"
        assert translate_client.jobs["job-1"]["params"]["SourceLanguageCode"] == "en"

    def test_rejected_job(self, make_gateway, translate_client):
        translate_client.fail_start = True
        with pytest.raises(BatchJobFailed) as exc_info:
            make_gateway().submit_batch(f"s3://{BUCKET}/in/x.jsonl", f"s3://{BUCKET}/out/", "en", "vi")
        assert "role not assumable" in exc_info.value.reason


class TestAwaitCompletion:
    """Test cases for await_completion."""

    def _submit(self, gateway):
        return gateway.submit_batch(f"s3://{BUCKET}/in/x.jsonl", f"s3://{BUCKET}/out/", "en", "vi")

    def test_polls_until_completed(self, make_gateway, translate_client, store, sleeps, sink):
        store.put_text(BUCKET, "in/x.jsonl", '{"key": "a", "text": "Hi"}')
        gateway = make_gateway()
        properties = gateway.await_completion(self._submit(gateway), poll_interval=2.5)

        assert properties["JobStatus"] == "COMPLETED"
        assert translate_client.describe_calls == 3
        assert sleeps == [2.5, 2.5]
        polls = sink.with_flag("tr_batch_poll")
        assert [e.data["status"] for e in polls] == ["SUBMITTED", "IN_PROGRESS", "COMPLETED"]

    def test_completed_with_error_is_success(self, make_gateway, translate_client, store):
        translate_client.statuses = ["COMPLETED_WITH_ERROR"]
        store.put_text(BUCKET, "in/x.jsonl", '{"key": "a", "text": "Hi"}')
        gateway = make_gateway()
        assert gateway.await_completion(self._submit(gateway))["JobStatus"] == "COMPLETED_WITH_ERROR"

    @pytest.mark.parametrize("terminal", ["FAILED", "STOPPED"])
    def test_terminal_failure(self, make_gateway, translate_client, sleeps, terminal):
        translate_client.statuses = ["SUBMITTED", terminal]
        gateway = make_gateway()
        with pytest.raises(BatchJobFailed) as exc_info:
            gateway.await_completion(self._submit(gateway))

        assert exc_info.value.status == terminal
        assert exc_info.value.reason == "remote job broke"
        assert len(sleeps) == 1

    def test_describe_error(self, make_gateway, translate_client):
        gateway = make_gateway()
        handle = self._submit(gateway)

        def broken(JobId):
            raise client_error("ThrottlingException", "slow down", "DescribeTextTranslationJob")

        translate_client.describe_text_translation_job = broken
        with pytest.raises(BatchJobFailed, match="slow down"):
            gateway.await_completion(handle)


class TestFetchResults:
    """Test cases for fetch_results."""

    def test_reads_out_file(self, make_gateway, store):
        store.put_text(BUCKET, "out/job-1/details.json", "{}")
        store.put_text(BUCKET, "out/job-1/vi.input.jsonl.out", '{"key": "a", "text": "Xin chào"}\n')
        assert make_gateway().fetch_results(f"s3://{BUCKET}/out") == [{"key": "a", "text": "Xin chào"}]

    def test_raw_lines(self, make_gateway, store):
        store.put_text(BUCKET, "out/job-1/result.txt", "Xin chào\nTạm biệt")
        assert make_gateway().fetch_results(f"s3://{BUCKET}/out/") == [{"text": "Xin chào"}, {"text": "Tạm biệt"}]

    def test_nothing_under_prefix(self, make_gateway):
        with pytest.raises(NoResultsError):
            make_gateway().fetch_results(f"s3://{BUCKET}/out/")

    def test_empty_output(self, make_gateway, store):
        store.put_text(BUCKET, "out/job-1/vi.input.jsonl.out", "\n")
        with pytest.raises(NoResultsError, match="empty"):
            make_gateway().fetch_results(f"s3://{BUCKET}/out/")

    def test_invalid_uri(self, make_gateway):
        with pytest.raises(NoResultsError):
            make_gateway().fetch_results("not-a-uri")


class TestTranslateOne:
    """Test cases for translate_one."""

    def test_success(self, make_gateway, translate_client):
        translate_client.table[("Login", "vi")] = "Đăng nhập"
        assert make_gateway().translate_one("Login", "vi") == "Đăng nhập"
        assert translate_client.translate_calls == [("Login", "vi")]

    def test_non_string_is_stringified(self, make_gateway, translate_client):
        assert make_gateway().translate_one(3, "vi") == "vi:3"

    def test_failure(self, make_gateway, translate_client):
        translate_client.fail_targets.add("vi")
        with pytest.raises(TranslationError) as exc_info:
            make_gateway().translate_one("Login", "vi")
        assert exc_info.value.code == "translate_failed"


class TestCleanup:
    """Test cases for cleanup."""

    def test_removes_input_and_outputs(self, make_gateway, store):
        store.put_text(BUCKET, "in/x.jsonl", "{}")
        store.put_text(BUCKET, "out/run/job-1/vi.input.jsonl.out", "x")
        store.put_text(BUCKET, "out/run/job-1/details.json", "{}")
        store.put_text(BUCKET, "keep/me.txt", "x")

        assert make_gateway().cleanup("in/x.jsonl", "out/run/") is True
        assert list(store.objects) == [(BUCKET, "keep/me.txt")]

    def test_failures_are_not_raised(self, make_gateway, store):
        store.put_text(BUCKET, "in/x.jsonl", "{}")
        store.fail_delete = True
        assert make_gateway().cleanup("in/x.jsonl", "out/") is False
        assert (BUCKET, "in/x.jsonl") in store.objects

    def test_nothing_to_clean(self, make_gateway):
        assert make_gateway().cleanup(None, None) is True


class TestUndecodableOutput:
    """Batch output that is not UTF-8, read through the real S3 wrapper."""

    def test_invalid_utf8_is_no_results(self, translate_client, sink):
        client = boto3.client(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        )
        raw = b"\xff\xfe bad"
        with Stubber(client) as stubber:
            stubber.add_response(
                "list_objects_v2",
                {"Contents": [{"Key": "out/job-1/vi.input.jsonl.out"}], "IsTruncated": False},
                {"Bucket": BUCKET, "Prefix": "out/"},
            )
            stubber.add_response(
                "get_object",
                {"Body": StreamingBody(io.BytesIO(raw), len(raw))},
                {"Bucket": BUCKET, "Key": "out/job-1/vi.input.jsonl.out"},
            )
            gateway = TranslationGateway(bucket=BUCKET, source_code="en", role_arn=ROLE_ARN,
                                         translate_client=translate_client,
                                         store=S3ObjectStore(client=client), sink=sink)

            with pytest.raises(NoResultsError, match="not valid UTF-8") as exc_info:
                gateway.fetch_results(f"s3://{BUCKET}/out/")

        assert exc_info.value.code == "no_results"
        assert exc_info.value.details["key"] == "out/job-1/vi.input.jsonl.out"
