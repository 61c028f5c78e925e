"""
Translation module - Core translation functionality

This module provides:
- Format helpers: flatten/unflatten bundles and extract placeholders
- Validation of key and placeholder parity
- RunProgress / RunSummary progress tracking
- Pipeline events and sinks

TranslationRunner lives in src.translation.manager and is imported from
there; it depends on src.remote, which itself uses the helpers above.
"""

from src.translation.progress import PairOutcome, RunProgress, RunSummary
from src.translation.events import (
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    NullEventSink,
    PipelineEvent,
    RecordingEventSink,
)
from src.translation.utils import (
    extract_placeholders,
    flatten_json,
    unflatten_json,
)
from src.translation.validator import ValidationReport, diff_keys_and_placeholders
