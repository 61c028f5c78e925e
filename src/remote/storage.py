"""
Object store façade over S3.

Only the operations the translation pipeline needs: upload a text object,
list keys under a prefix, download a text object and delete objects.
"""

from typing import Iterable, List

import boto3

from src.logger import get_logger

logger = get_logger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000

# Methods every object store handed to the gateway must provide
REQUIRED_STORE_METHODS = ("put_text", "list_keys", "get_text", "delete_key", "delete_keys")


class S3ObjectStore:
    """Thin wrapper around a boto3 S3 client."""

    def __init__(self, region: str = None, client=None):
        self.client = client or boto3.client("s3", region_name=region)

    def put_text(self, bucket: str, key: str, body: str, content_type: str = "text/plain") -> None:
        logger.debug(f"PUT s3://{bucket}/{key} ({len(body)} chars)")
        self.client.put_object(
            Bucket=bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType=content_type,
        )

    def list_keys(self, bucket: str, prefix: str) -> List[str]:
        """List every key under a prefix, following pagination."""
        keys = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                keys.append(obj["Key"])
        logger.debug(f"LIST s3://{bucket}/{prefix}: {len(keys)} object(s)")
        return keys

    def get_text(self, bucket: str, key: str) -> str:
        response = self.client.get_object(Bucket=bucket, Key=key)
        return response["Body"].read().decode("utf-8")

    def delete_key(self, bucket: str, key: str) -> None:
        self.client.delete_object(Bucket=bucket, Key=key)

    def delete_keys(self, bucket: str, keys: Iterable[str]) -> None:
        keys = list(keys)
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            self.client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
