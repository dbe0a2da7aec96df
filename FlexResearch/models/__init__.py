"""FlexResearch data models."""

from .research import (
    ResearchDomain,
    OutputFormat,
    QualityCheckType,
    ResearchDimension,
    QualityCheckConfig,
    ContextSnapshot,
    ConfigurationSnapshot,
    ResearchContext,
    ResearchConfig,
    DimensionResults,
    QualityIssue,
    QualityReviewResult,
    Recommendations,
    ResearchSynthesis,
)

__all__ = [
    "ResearchDomain",
    "OutputFormat",
    "QualityCheckType",
    "ResearchDimension",
    "QualityCheckConfig",
    "ContextSnapshot",
    "ConfigurationSnapshot",
    "ResearchContext",
    "ResearchConfig",
    "DimensionResults",
    "QualityIssue",
    "QualityReviewResult",
    "Recommendations",
    "ResearchSynthesis",
]
