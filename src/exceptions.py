"""
Pipeline Exceptions

Exception classes shared by the remote gateway and the translation pipeline.
Kept in their own module to avoid circular imports between src.remote and
src.translation.

Recovered locally by falling back to per-string translation:
- StagingError, BatchJobFailed, NoResultsError

Abort only the current module/locale pair:
- ReadError, ValidationError, WriteError

Abort the whole run:
- DiscoveryError
"""

from typing import Any, Dict, Optional


class TranslationError(Exception):
    """Translation pipeline error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class BatchFallbackError(TranslationError):
    """Base class for batch failures that trigger the per-string fallback."""


class StagingError(BatchFallbackError):
    """The object store rejected the staged batch input."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="staging_failed", details=details)


class BatchJobFailed(BatchFallbackError):
    """The batch job could not be started or ended FAILED/STOPPED."""

    def __init__(self, message: str, job_id: str = None, status: str = None, reason: str = None):
        super().__init__(
            message,
            code="batch_failed",
            details={"job_id": job_id, "status": status, "reason": reason},
        )
        self.job_id = job_id
        self.status = status
        self.reason = reason


class NoResultsError(BatchFallbackError):
    """The batch job produced no usable output."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="no_results", details=details)


class ReadError(TranslationError):
    """Source bundle missing or not valid JSON."""

    def __init__(self, message: str, path: str = None):
        super().__init__(message, code="read_failed", details={"path": path})


class ValidationError(TranslationError):
    """Translated bundle does not match the source keys or placeholders."""

    def __init__(self, message: str, errors=None):
        super().__init__(message, code="validation_failed", details={"errors": errors or []})
        self.errors = errors or []


class WriteError(TranslationError):
    """Translated bundle could not be written to disk."""

    def __init__(self, message: str, path: str = None):
        super().__init__(message, code="write_failed", details={"path": path})


class DiscoveryError(TranslationError):
    """No i18n base directory exists, so there is nothing to run."""

    def __init__(self, message: str, candidates=None):
        super().__init__(message, code="no_base_dir", details={"candidates": candidates or []})
