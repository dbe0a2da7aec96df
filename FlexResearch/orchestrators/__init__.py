"""
FlexResearch Orchestrators.

- ResearchManager: session, plan and batch entry points
- ConfigStore: finalized plans keyed by id
"""

from .research_manager import (
    ResearchManager,
    ConfigStore,
    SessionStarted,
    TurnOutcome,
    FinalizedPlan,
    ResearchRun,
)

__all__ = [
    "ResearchManager",
    "ConfigStore",
    "SessionStarted",
    "TurnOutcome",
    "FinalizedPlan",
    "ResearchRun",
]
