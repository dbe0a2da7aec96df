"""
FlexResearch runtime: admission control, work units, execution and events.

Provides:
- AdmissionController: sliding-window gate on completion calls
- WorkUnit / Batch: research units and their container
- WorkUnitExecutor: runs one unit, failures recorded as data
- BatchOrchestrator: sequential or slice-bounded concurrent execution
- RunLog: append-only event log
"""

from .admission import AdmissionController
from .runlog import (
    EventType,
    Event,
    AnyEvent,
    RunLog,
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
)
from .workunit import UnitStatus, ExecutionMode, WorkUnit, Batch
from .executor import WorkUnitExecutor, StructuredFindings, degraded_result
from .batch import BatchOrchestrator

__all__ = [
    "AdmissionController",
    "EventType",
    "Event",
    "AnyEvent",
    "RunLog",
    "SessionStartedEvent",
    "TurnCompletedEvent",
    "SessionCompletedEvent",
    "SessionAbandonedEvent",
    "ConfigFinalizedEvent",
    "BatchStartedEvent",
    "SliceStartedEvent",
    "BatchCompletedEvent",
    "UnitStartedEvent",
    "UnitCompletedEvent",
    "UnitFailedEvent",
    "AdmissionWaitEvent",
    "UnitStatus",
    "ExecutionMode",
    "WorkUnit",
    "Batch",
    "WorkUnitExecutor",
    "StructuredFindings",
    "degraded_result",
    "BatchOrchestrator",
]
