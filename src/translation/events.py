"""
Structured pipeline events.

The runner reports every stage as a PipelineEvent to an injected sink.
Sinks are fire-and-forget: a failing sink is logged and never breaks a run.
"""

import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from src.logger import get_logger

logger = get_logger(__name__)

# Flags whose events are too chatty for INFO
_DEBUG_FLAGS = {"tr_batch_poll"}
_WARNING_FLAGS = {"tr_error", "tr_cleanup_warn", "tr_validate_fail"}


@dataclass
class PipelineEvent:
    """One labelled event from the pipeline."""
    flag: str
    action: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    critical: bool = False
    time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EventSink:
    """Receives pipeline events. The base class discards them."""

    def emit(self, event: PipelineEvent) -> None:
        pass


class NullEventSink(EventSink):
    """Default sink when the caller supplies none."""


class LoggingEventSink(EventSink):
    """Writes events through the project logger."""

    def __init__(self, name: str = "src.pipeline"):
        self.logger = get_logger(name)

    def emit(self, event: PipelineEvent) -> None:
        line = f"[{event.flag}] {event.action}: {event.message}"
        if event.critical:
            self.logger.error(f"{line} {event.data}")
        elif event.flag in _WARNING_FLAGS:
            self.logger.warning(f"{line} {event.data}")
        elif event.flag in _DEBUG_FLAGS:
            self.logger.debug(line)
        else:
            self.logger.info(line)


class RecordingEventSink(EventSink):
    """Keeps events in memory, for background jobs and tests."""

    def __init__(self):
        self.events: List[PipelineEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: PipelineEvent) -> None:
        with self._lock:
            self.events.append(event)

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [event.to_dict() for event in self.events]

    def with_flag(self, flag: str) -> List[PipelineEvent]:
        with self._lock:
            return [event for event in self.events if event.flag == flag]

    @property
    def critical_events(self) -> List[PipelineEvent]:
        with self._lock:
            return [event for event in self.events if event.critical]


class CompositeEventSink(EventSink):
    """Forwards every event to several sinks."""

    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def emit(self, event: PipelineEvent) -> None:
        for sink in self.sinks:
            safe_emit(sink, event)


def safe_emit(sink: Optional[EventSink], event: PipelineEvent) -> None:
    """Deliver an event, logging instead of raising if the sink fails."""
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception as e:
        logger.warning(f"Event sink {type(sink).__name__} failed on {event.flag}: {e}")


def require_sink(sink: Optional[Any]) -> EventSink:
    """
    Check an event sink once, at construction time.

    Raises:
        TypeError: If the object has no callable emit()
    """
    if sink is None:
        return NullEventSink()
    if not callable(getattr(sink, "emit", None)):
        raise TypeError(f"Event sink {type(sink).__name__} has no emit() method")
    return sink
