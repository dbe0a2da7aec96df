"""
Research configuration and result models.

Provides:
- ResearchDimension / QualityCheckConfig: building blocks of a plan
- ConfigurationSnapshot: partial configuration accumulated by a session
- ResearchConfig: finalized, immutable plan handed to a batch
- DimensionResults, QualityReviewResult, ResearchSynthesis: research output
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class ResearchDomain(str, Enum):
    """Domain tag of a research configuration."""
    MARKET_RESEARCH = "market_research"
    ACADEMIC_RESEARCH = "academic_research"
    COMPETITIVE_ANALYSIS = "competitive_analysis"
    TECHNOLOGY_ASSESSMENT = "technology_assessment"
    POLICY_RESEARCH = "policy_research"
    INVESTMENT_ANALYSIS = "investment_analysis"
    CUSTOM = "custom"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "ResearchDomain":
        """Map a free-form tag onto a known domain, `custom` when unknown."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.CUSTOM


class OutputFormat(str, Enum):
    """Desired shape of the final synthesis."""
    COMPARISON = "comparison"
    DEEP_DIVE = "deep_dive"
    RECOMMENDATION = "recommendation"
    SURVEY = "survey"
    SYNTHESIS = "synthesis"
    EXECUTIVE_SUMMARY = "executive_summary"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "OutputFormat":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.SYNTHESIS


class QualityCheckType(str, Enum):
    COMPLETENESS = "completeness"
    ACCURACY = "accuracy"
    BIAS = "bias"
    CONSISTENCY = "consistency"
    DEPTH = "depth"


class ResearchDimension(BaseModel):
    """
    One facet of the research topic; each becomes a work unit.

    Weights are informational and are not normalized across a plan.
    """

    id: str = Field(..., description="Dimension identifier, unique within a plan")
    name: str = Field(..., description="Human-readable name")
    description: str = Field(default="", description="What this facet covers")
    evaluation_criteria: list[str] = Field(default_factory=list, description="How findings are judged")
    data_points: list[str] = Field(default_factory=list, description="Specific data to collect")
    weight: Optional[float] = Field(default=None, description="Relative importance, not normalized")

    model_config = {"extra": "forbid", "frozen": True}


class QualityCheckConfig(BaseModel):
    """A quality criterion and the score it must reach."""

    type: QualityCheckType
    criteria: list[str] = Field(default_factory=list)
    threshold: float = Field(..., ge=0.0, le=1.0)

    model_config = {"extra": "forbid", "frozen": True}


class ContextSnapshot(BaseModel):
    """Partially known research context; every field may still be missing."""

    domain: Optional[str] = None
    audience: list[str] = Field(default_factory=list)
    perspective: Optional[str] = None
    constraints: Optional[dict[str, Any]] = None

    model_config = {"extra": "forbid"}


class ConfigurationSnapshot(BaseModel):
    """
    Best-known configuration derived from a session's turns so far.

    Fields are filled in as extraction reports them and are never cleared by
    a later extraction that omits them.
    """

    topic: Optional[str] = Field(default=None, description="Research topic")
    context: ContextSnapshot = Field(default_factory=ContextSnapshot)
    dimensions: list[ResearchDimension] = Field(default_factory=list)
    output_format: Optional[str] = Field(default=None, description="Requested output format tag")
    quality_checks: list[QualityCheckConfig] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class ResearchContext(BaseModel):
    """Fully specified research context of a finalized plan."""

    domain: ResearchDomain = ResearchDomain.CUSTOM
    audience: tuple[str, ...] = ("general",)
    perspective: str = "balanced"
    constraints: Optional[dict[str, Any]] = None

    model_config = {"extra": "forbid", "frozen": True}


class ResearchConfig(BaseModel):
    """Finalized research plan. Immutable once produced."""

    id: str = Field(..., description="Configuration identifier")
    topic: str = Field(..., description="Research topic")
    context: ResearchContext = Field(default_factory=ResearchContext)
    dimensions: tuple[ResearchDimension, ...] = Field(..., description="One work unit per dimension")
    output_format: OutputFormat = OutputFormat.SYNTHESIS
    quality_checks: tuple[QualityCheckConfig, ...] = Field(default_factory=tuple)
    session_id: Optional[str] = Field(default=None, description="Session this plan came from")
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def _unique_dimension_ids(self) -> "ResearchConfig":
        seen: set[str] = set()
        for dim in self.dimensions:
            if dim.id in seen:
                raise ValueError(f"duplicate dimension id: {dim.id}")
            seen.add(dim.id)
        return self

    def dimension(self, dimension_id: str) -> Optional[ResearchDimension]:
        for dim in self.dimensions:
            if dim.id == dimension_id:
                return dim
        return None


class DimensionResults(BaseModel):
    """Structured findings for one dimension."""

    dimension_id: str
    findings: dict[str, Any] = Field(default_factory=dict)
    evidence: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    parse_failure: bool = Field(default=False, description="Structured re-statement could not be parsed")

    model_config = {"extra": "forbid"}


class QualityIssue(BaseModel):
    type: str
    severity: Literal["low", "medium", "high"]
    description: str
    suggestion: Optional[str] = None

    model_config = {"extra": "ignore"}


class QualityReviewResult(BaseModel):
    """Quality assessment of a finished batch."""

    overall_score: float = Field(..., ge=0.0, le=1.0)
    dimension_scores: dict[str, float] = Field(default_factory=dict)
    issues: list[QualityIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    parse_failure: bool = False

    model_config = {"extra": "forbid"}


class Recommendations(BaseModel):
    primary: str
    supporting: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.75, ge=0.0, le=1.0)

    model_config = {"extra": "ignore"}


class ResearchSynthesis(BaseModel):
    """Aggregate synthesis over every completed dimension of a batch."""

    config_id: str
    topic: str
    dimension_findings: dict[str, DimensionResults] = Field(default_factory=dict)
    cross_dimension_insights: list[str] = Field(default_factory=list)
    recommendations: Recommendations
    executive_summary: Optional[str] = None
    quality_review: Optional[QualityReviewResult] = None
    narrative: str = Field(default="", description="Free-form synthesis text")
    error: Optional[str] = Field(default=None, description="Set when synthesis could not run")

    model_config = {"extra": "forbid"}
