"""
FlexResearch: conversational research planning and rate-limited execution.

A configuration conversation turns a topic into a research plan (a set of
dimensions). Each dimension is researched as an independent work unit
through a single completion service, and the results are synthesized.

Architecture:
- conversation/: sessions, extraction strategies, templates, registry
- runtime/: admission control, work units, executor, batch orchestration, run log
- llm_backends/: completion services and the admission-gated gateway
- research/: prompts, JSON recovery, synthesis, quality review, plan preview
- orchestrators/: ResearchManager entry points
- config/: YAML settings
- infrastructure/: categorized errors, cancellation tokens and deadlines

Quick Start:
    from FlexResearch import ResearchManager

    manager = ResearchManager.from_settings()
    started = await manager.start_session("Market research for home solar batteries")
    outcome = await manager.continue_session(started.session_id, "For investors, keep it brief")
    plan = await manager.finalize(started.session_id)
    run = await manager.run_batch(plan.config_id, include_quality_review=True)
"""

__version__ = "0.1.0"

# Entry points
from .orchestrators import (
    ResearchManager,
    ConfigStore,
    SessionStarted,
    TurnOutcome,
    FinalizedPlan,
    ResearchRun,
)

# Configuration conversation
from .conversation import (
    ConversationSession,
    SessionRegistry,
    SessionStatus,
    ExtractionStrategy,
    LLMExtractionStrategy,
    KeywordExtractionStrategy,
    suggest_domain,
)

# Runtime
from .runtime import (
    AdmissionController,
    Batch,
    BatchOrchestrator,
    ExecutionMode,
    RunLog,
    UnitStatus,
    WorkUnit,
    WorkUnitExecutor,
)

# LLM Backends
from .llm_backends import CompletionGateway, CompletionService, ModelParameters, create_backend

# Models
from .models import ConfigurationSnapshot, DimensionResults, ResearchConfig, ResearchSynthesis

# Errors and cancellation
from .infrastructure import (
    CancellationToken,
    CompletionError,
    ConfigNotFoundError,
    Deadline,
    FlexResearchError,
    OperationCancelledError,
    SessionNotActiveError,
    SessionNotFoundError,
)

# Settings and console
from .config import get_settings
from .utils import console

__all__ = [
    # Version
    "__version__",
    # Entry points
    "ResearchManager",
    "ConfigStore",
    "SessionStarted",
    "TurnOutcome",
    "FinalizedPlan",
    "ResearchRun",
    # Conversation
    "ConversationSession",
    "SessionRegistry",
    "SessionStatus",
    "ExtractionStrategy",
    "LLMExtractionStrategy",
    "KeywordExtractionStrategy",
    "suggest_domain",
    # Runtime
    "AdmissionController",
    "Batch",
    "BatchOrchestrator",
    "ExecutionMode",
    "RunLog",
    "UnitStatus",
    "WorkUnit",
    "WorkUnitExecutor",
    # Backends
    "CompletionGateway",
    "CompletionService",
    "ModelParameters",
    "create_backend",
    # Models
    "ConfigurationSnapshot",
    "DimensionResults",
    "ResearchConfig",
    "ResearchSynthesis",
    # Errors
    "CancellationToken",
    "CompletionError",
    "ConfigNotFoundError",
    "Deadline",
    "FlexResearchError",
    "OperationCancelledError",
    "SessionNotActiveError",
    "SessionNotFoundError",
    # Settings
    "get_settings",
    "console",
]
