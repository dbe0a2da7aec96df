"""
QualityReviewer: optional quality assessment over a finished batch.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from ..infrastructure.cancellation import CancellationToken, Deadline
from ..infrastructure.errors import CompletionError
from ..models.research import (
    DimensionResults,
    QualityCheckConfig,
    QualityIssue,
    QualityReviewResult,
    ResearchConfig,
)
from ..utils import console
from .parsing import MalformedOutputError, extract_json
from .prompts import (
    improvement_prompt,
    review_structuring_prompt,
    review_system_prompt,
    review_user_prompt,
)

if TYPE_CHECKING:
    from ..llm_backends.gateway import CompletionGateway


DEFAULT_SCORE = 0.7
DEFAULT_REVIEW_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.6
HIGH_QUALITY_SCORE = 0.9

DEFAULT_RECOMMENDATIONS = [
    "Consider expanding research scope",
    "Verify findings with additional sources",
    "Add more specific examples",
]
FALLBACK_RECOMMENDATIONS = [
    "Review research completeness",
    "Verify evidence quality",
    "Check for potential biases",
]
DEFAULT_SUGGESTIONS = [
    "Expand research to cover all defined dimensions",
    "Add more concrete examples and evidence",
    "Verify findings across multiple sources",
    "Address identified gaps in analysis",
]

_BULLET = re.compile(r"^[\d\-\*•]")
_BULLET_PREFIX = re.compile(r"^[\d\-\*•\.\)]+\s*")


def threshold_issues(checks: Sequence[QualityCheckConfig], score: float) -> list[QualityIssue]:
    """One issue per quality check whose threshold `score` falls below."""
    issues = []
    for check in checks:
        if score >= check.threshold:
            continue
        if score < check.threshold * 0.7:
            severity = "high"
        elif score < check.threshold * 0.9:
            severity = "medium"
        else:
            severity = "low"
        issues.append(QualityIssue(
            type=check.type.value,
            severity=severity,
            description=f"Quality check '{check.type.value}' below threshold ({score:.2f} < {check.threshold})",
            suggestion=f"Review {', '.join(check.criteria)}",
        ))
    return issues


def _score(value, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return min(max(float(value), 0.0), 1.0)


class QualityReviewer:
    """
    Reviews batch results against the plan's quality checks.

    Malformed structured output yields a fallback review flagged with
    `parse_failure`; service errors propagate to the caller.
    """

    def __init__(self, gateway: "CompletionGateway"):
        self.gateway = gateway

    async def review(
        self,
        config: ResearchConfig,
        results: Mapping[str, DimensionResults],
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> QualityReviewResult:
        text = await self.gateway.complete_for(
            "review",
            review_system_prompt(config),
            review_user_prompt(config, results),
            cancel,
            deadline,
        )
        structured = await self.gateway.complete_for(
            "structure", None, review_structuring_prompt(text), cancel, deadline
        )
        return self.build_review(config, structured)

    def build_review(self, config: ResearchConfig, structured_text: str) -> QualityReviewResult:
        default_scores = {d.id: DEFAULT_SCORE for d in config.dimensions}
        try:
            data = extract_json(structured_text, dict)
        except MalformedOutputError:
            console.debug("Quality review structure not parseable, using fallback")
            return QualityReviewResult(
                overall_score=DEFAULT_SCORE,
                dimension_scores=default_scores,
                issues=[QualityIssue(
                    type="parse_error",
                    severity="low",
                    description="Could not fully parse quality review",
                    suggestion="Manual review may be needed",
                )],
                recommendations=list(FALLBACK_RECOMMENDATIONS),
                confidence=FALLBACK_CONFIDENCE,
                parse_failure=True,
            )

        overall = _score(data.get("overall_score", data.get("overallScore")), DEFAULT_SCORE)

        raw_scores = data.get("dimension_scores", data.get("dimensionScores"))
        if isinstance(raw_scores, dict) and raw_scores:
            dimension_scores = {str(k): _score(v, DEFAULT_SCORE) for k, v in raw_scores.items()}
        else:
            dimension_scores = default_scores

        issues = []
        for item in data.get("issues") or []:
            if not isinstance(item, dict):
                continue
            try:
                issues.append(QualityIssue.model_validate(item))
            except ValueError:
                continue
        issues += threshold_issues(config.quality_checks, overall)

        recommendations = data.get("recommendations")
        if not isinstance(recommendations, list) or not recommendations:
            recommendations = list(DEFAULT_RECOMMENDATIONS)

        return QualityReviewResult(
            overall_score=overall,
            dimension_scores=dimension_scores,
            issues=issues,
            recommendations=[str(r) for r in recommendations],
            confidence=_score(data.get("confidence"), DEFAULT_REVIEW_CONFIDENCE),
        )

    async def suggest_improvements(
        self,
        review: QualityReviewResult,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> list[str]:
        """Actionable suggestions; no call is made for high-scoring reviews."""
        if review.overall_score >= HIGH_QUALITY_SCORE:
            return ["Research meets high quality standards"]

        try:
            text = await self.gateway.complete_for("suggest", None, improvement_prompt(review), cancel, deadline)
        except CompletionError as e:
            console.warning("Improvement suggestions unavailable", e.message)
            return list(DEFAULT_SUGGESTIONS)

        suggestions = []
        for line in text.splitlines():
            line = line.strip()
            if not _BULLET.match(line):
                continue
            cleaned = _BULLET_PREFIX.sub("", line).strip()
            if cleaned:
                suggestions.append(cleaned)

        return suggestions or list(DEFAULT_SUGGESTIONS)
