"""
RunLog: Event-sourced execution log.

Provides:
- Event types for sessions, batches, work units and admission waits
- RunLog for append-only event storage with an optional JSONL mirror
- Query helpers by type, session, batch and unit
"""

from __future__ import annotations

from abc import ABC
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
import json

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events in the run log."""

    # Session events
    SESSION_STARTED = "session_started"
    TURN_COMPLETED = "turn_completed"
    SESSION_COMPLETED = "session_completed"
    SESSION_ABANDONED = "session_abandoned"
    CONFIG_FINALIZED = "config_finalized"

    # Batch events
    BATCH_STARTED = "batch_started"
    SLICE_STARTED = "slice_started"
    BATCH_COMPLETED = "batch_completed"

    # Unit events
    UNIT_STARTED = "unit_started"
    UNIT_COMPLETED = "unit_completed"
    UNIT_FAILED = "unit_failed"

    # Admission events
    ADMISSION_WAIT = "admission_wait"


class Event(BaseModel, ABC):
    """Base class for all events."""

    event_type: EventType = Field(..., description="Type of event")
    timestamp: datetime = Field(default_factory=datetime.now, description="When event occurred")
    run_id: str = Field(default="", description="ID of the run log this event belongs to")
    sequence: int = Field(default=0, description="Sequence number within the log")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    model_config = {"extra": "forbid"}


class SessionStartedEvent(Event):
    event_type: EventType = EventType.SESSION_STARTED
    session_id: str = Field(..., description="Session identifier")
    topic: str = Field(..., description="Initial description")
    suggested_template: Optional[str] = Field(default=None, description="Domain hint")


class TurnCompletedEvent(Event):
    """A continue turn finished (both calls succeeded)."""
    event_type: EventType = EventType.TURN_COMPLETED
    session_id: str = Field(..., description="Session identifier")
    turn_count: int = Field(..., description="Turns in the session after this one")
    complete: bool = Field(default=False, description="Sufficiency reported by extraction")


class SessionCompletedEvent(Event):
    event_type: EventType = EventType.SESSION_COMPLETED
    session_id: str = Field(..., description="Session identifier")


class SessionAbandonedEvent(Event):
    event_type: EventType = EventType.SESSION_ABANDONED
    session_id: str = Field(..., description="Session identifier")


class ConfigFinalizedEvent(Event):
    event_type: EventType = EventType.CONFIG_FINALIZED
    session_id: Optional[str] = Field(default=None, description="Source session")
    config_id: str = Field(..., description="Finalized configuration id")
    dimension_count: int = Field(..., description="Dimensions in the plan")


class BatchStartedEvent(Event):
    event_type: EventType = EventType.BATCH_STARTED
    batch_id: str = Field(..., description="Batch identifier")
    config_id: str = Field(..., description="Configuration the batch was derived from")
    mode: str = Field(..., description="concurrent or sequential")
    unit_count: int = Field(..., description="Units in the batch")
    max_concurrent: int = Field(..., description="Concurrency cap")


class SliceStartedEvent(Event):
    event_type: EventType = EventType.SLICE_STARTED
    batch_id: str = Field(..., description="Batch identifier")
    slice_index: int = Field(..., description="Zero-based slice number")
    unit_ids: list[str] = Field(default_factory=list, description="Units launched together")


class BatchCompletedEvent(Event):
    event_type: EventType = EventType.BATCH_COMPLETED
    batch_id: str = Field(..., description="Batch identifier")
    completed: int = Field(..., description="Units completed")
    failed: int = Field(..., description="Units failed")
    slices_run: int = Field(..., description="Slices (or sequential steps) executed")


class UnitStartedEvent(Event):
    event_type: EventType = EventType.UNIT_STARTED
    batch_id: str = Field(..., description="Owning batch")
    unit_id: str = Field(..., description="Work unit id")
    dimension_id: str = Field(..., description="Dimension researched")


class UnitCompletedEvent(Event):
    event_type: EventType = EventType.UNIT_COMPLETED
    batch_id: str = Field(..., description="Owning batch")
    unit_id: str = Field(..., description="Work unit id")
    confidence: float = Field(..., description="Result confidence")
    degraded: bool = Field(default=False, description="Structured output could not be parsed")


class UnitFailedEvent(Event):
    event_type: EventType = EventType.UNIT_FAILED
    batch_id: str = Field(..., description="Owning batch")
    unit_id: str = Field(..., description="Work unit id")
    error: str = Field(..., description="Diagnostic reason")


class AdmissionWaitEvent(Event):
    event_type: EventType = EventType.ADMISSION_WAIT
    wait_seconds: float = Field(..., description="Suspension requested")
    in_window: int = Field(..., description="Admissions in the window when the wait began")


AnyEvent = Union[
    SessionStartedEvent,
    TurnCompletedEvent,
    SessionCompletedEvent,
    SessionAbandonedEvent,
    ConfigFinalizedEvent,
    BatchStartedEvent,
    SliceStartedEvent,
    BatchCompletedEvent,
    UnitStartedEvent,
    UnitCompletedEvent,
    UnitFailedEvent,
    AdmissionWaitEvent,
]


class RunLog:
    """
    Append-only event log.

    Events are kept in memory for the life of the process and, when an output
    directory is given, mirrored to runlog.jsonl as they arrive.
    """

    def __init__(self, run_id: str, output_dir: Optional[Path] = None):
        self.run_id = run_id
        self.events: list[AnyEvent] = []
        self._sequence = 0
        self._output_file: Optional[Path] = None

        if output_dir:
            self._output_file = Path(output_dir) / "runlog.jsonl"

    def append(self, event: AnyEvent) -> None:
        """Set sequence number and run_id, store, and mirror if configured."""
        self._sequence += 1
        event.run_id = self.run_id
        event.sequence = self._sequence
        self.events.append(event)

        if self._output_file:
            self._write_event(event)

    def _write_event(self, event: AnyEvent) -> None:
        self._output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self._output_file, "a") as f:
            f.write(json.dumps(event.model_dump(mode="json")) + "\n")

    def query_by_type(self, event_type: EventType) -> list[AnyEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def query_by_session(self, session_id: str) -> list[AnyEvent]:
        return [e for e in self.events if getattr(e, "session_id", None) == session_id]

    def query_by_batch(self, batch_id: str) -> list[AnyEvent]:
        return [e for e in self.events if getattr(e, "batch_id", None) == batch_id]

    def query_by_unit(self, unit_id: str) -> list[AnyEvent]:
        return [e for e in self.events if getattr(e, "unit_id", None) == unit_id]

    def latest(self, n: int = 10) -> list[AnyEvent]:
        """Get the n most recent events."""
        return self.events[-n:]

    def summary(self) -> dict[str, Any]:
        """Event counts by type."""
        event_counts: dict[str, int] = {}
        for event in self.events:
            event_counts[event.event_type.value] = event_counts.get(event.event_type.value, 0) + 1

        return {
            "run_id": self.run_id,
            "event_count": len(self.events),
            "event_types": event_counts,
        }

    @classmethod
    def load(cls, jsonl_path: Path) -> "RunLog":
        """
        Load a run log mirror back from disk.

        Events come back as plain dicts.
        """
        events = []
        run_id = ""

        with open(jsonl_path) as f:
            for line in f:
                if line.strip():
                    data = json.loads(line)
                    if not run_id:
                        run_id = data.get("run_id", "unknown")
                    events.append(data)

        log = cls(run_id=run_id)
        log.events = events  # type: ignore
        log._sequence = len(events)
        return log
