"""
Configuration conversation: sessions, extraction, templates and registry.
"""

from .templates import (
    DOMAIN_KEYWORDS,
    DEFAULT_QUALITY_CHECKS,
    FALLBACK_DIMENSIONS,
    RESEARCH_TEMPLATES,
    ResearchTemplate,
    suggest_domain,
    get_template,
    list_templates,
)
from .extraction import (
    ExtractionResult,
    ExtractionStrategy,
    LLMExtractionStrategy,
    KeywordExtractionStrategy,
    coerce_dimensions,
    normalize_updates,
    merge_updates,
)
from .session import (
    SessionStatus,
    TurnRole,
    ConversationTurn,
    TurnResult,
    ConversationSession,
)
from .registry import SessionStore, InMemorySessionStore, SessionRegistry

__all__ = [
    "DOMAIN_KEYWORDS",
    "DEFAULT_QUALITY_CHECKS",
    "FALLBACK_DIMENSIONS",
    "RESEARCH_TEMPLATES",
    "ResearchTemplate",
    "suggest_domain",
    "get_template",
    "list_templates",
    "ExtractionResult",
    "ExtractionStrategy",
    "LLMExtractionStrategy",
    "KeywordExtractionStrategy",
    "coerce_dimensions",
    "normalize_updates",
    "merge_updates",
    "SessionStatus",
    "TurnRole",
    "ConversationTurn",
    "TurnResult",
    "ConversationSession",
    "SessionStore",
    "InMemorySessionStore",
    "SessionRegistry",
]
