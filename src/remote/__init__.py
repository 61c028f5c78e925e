"""
Remote Module

This module provides the AWS Translate gateway and its S3 object store.
"""

from src.remote.gateway import JobHandle, TranslationGateway, parse_s3_uri
from src.remote.storage import S3ObjectStore

__all__ = ['JobHandle', 'TranslationGateway', 'S3ObjectStore', 'parse_s3_uri']
