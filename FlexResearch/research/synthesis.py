"""
SynthesisAgent: aggregates the completed dimensions of a batch.

Runs a synthesis call, then a structuring call for insights and
recommendations, then (for executive_summary and synthesis formats) an
executive summary call. Service failures produce a degraded synthesis with
`error` set instead of raising.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Optional

from ..infrastructure.cancellation import CancellationToken, Deadline
from ..infrastructure.errors import CompletionError, OperationCancelledError
from ..models.research import (
    OutputFormat,
    QualityReviewResult,
    Recommendations,
    ResearchConfig,
    ResearchSynthesis,
)
from ..runtime.workunit import Batch
from ..utils import console
from .parsing import MalformedOutputError, extract_json
from .prompts import (
    executive_summary_prompt,
    synthesis_structuring_prompt,
    synthesis_system_prompt,
    synthesis_user_prompt,
)

if TYPE_CHECKING:
    from ..llm_backends.gateway import CompletionGateway


DEFAULT_INSIGHTS = [
    "Research reveals consistent patterns across dimensions",
    "Multiple factors contribute to the overall findings",
]
DEFAULT_RECOMMENDATIONS = Recommendations(
    primary="Based on the research, the primary recommendation is to proceed with careful consideration of identified factors",
    supporting=["Monitor emerging trends", "Address identified gaps", "Leverage opportunities"],
    confidence=0.75,
)
UNPARSED_RECOMMENDATIONS = Recommendations(
    primary="Further analysis recommended",
    supporting=["Review findings in detail", "Consider additional research"],
    confidence=0.6,
)
INSIGHT_PREVIEW_CHARS = 200

SUMMARY_FORMATS = (OutputFormat.EXECUTIVE_SUMMARY, OutputFormat.SYNTHESIS)


class SynthesisAgent:
    """Builds a ResearchSynthesis from a finished batch."""

    def __init__(self, gateway: "CompletionGateway"):
        self.gateway = gateway

    async def synthesize(
        self,
        config: ResearchConfig,
        batch: Batch,
        review: Optional[QualityReviewResult] = None,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> ResearchSynthesis:
        findings = batch.results()

        try:
            text = await self.gateway.complete_for(
                "synthesis",
                synthesis_system_prompt(config),
                synthesis_user_prompt(config, findings, review),
                cancel,
                deadline,
            )
            structured = await self.gateway.complete_for(
                "structure", None, synthesis_structuring_prompt(text), cancel, deadline
            )
        except CompletionError as e:
            console.error("Synthesis failed", e.message)
            return self._unavailable(config, findings, review, f"Synthesis failed ({e.kind.value}): {e.message}")
        except OperationCancelledError as e:
            return self._unavailable(config, findings, review, f"Synthesis cancelled ({e.reason})")

        synthesis = self.build_synthesis(config, findings, review, text, structured)

        if config.output_format in SUMMARY_FORMATS:
            try:
                synthesis.executive_summary = await self.gateway.complete_for(
                    "summary", None, executive_summary_prompt(config, synthesis), cancel, deadline
                )
            except (CompletionError, OperationCancelledError) as e:
                console.warning("Executive summary generation failed", e.message)
                synthesis.executive_summary = "Executive summary generation failed."

        return synthesis

    def build_synthesis(self, config, findings, review, text: str, structured_text: str) -> ResearchSynthesis:
        """Parse the structuring output, falling back to fixed content."""
        try:
            data = extract_json(structured_text, dict)
        except MalformedOutputError:
            console.debug("Synthesis structure not parseable, using fallback")
            insights = [text[:INSIGHT_PREVIEW_CHARS] + "..."]
            recommendations = UNPARSED_RECOMMENDATIONS.model_copy()
        else:
            insights = data.get("cross_dimension_insights") or data.get("crossDimensionInsights")
            if not isinstance(insights, list) or not insights:
                insights = list(DEFAULT_INSIGHTS)
            recommendations = self._recommendations(data.get("recommendations"))

        return ResearchSynthesis(
            config_id=config.id,
            topic=config.topic,
            dimension_findings=findings,
            cross_dimension_insights=[str(i) for i in insights],
            recommendations=recommendations,
            quality_review=review,
            narrative=text,
        )

    def _unavailable(self, config, findings, review, error: str) -> ResearchSynthesis:
        return ResearchSynthesis(
            config_id=config.id,
            topic=config.topic,
            dimension_findings=findings,
            recommendations=UNPARSED_RECOMMENDATIONS.model_copy(),
            quality_review=review,
            error=error,
        )

    def _recommendations(self, raw) -> Recommendations:
        if not isinstance(raw, dict) or not raw.get("primary"):
            return DEFAULT_RECOMMENDATIONS.model_copy()
        try:
            return Recommendations.model_validate(raw)
        except ValueError:
            return DEFAULT_RECOMMENDATIONS.model_copy()

    async def render_custom(
        self,
        synthesis: ResearchSynthesis,
        output_template: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """Rewrite a synthesis according to a caller-supplied output template."""
        payload = json.dumps(synthesis.model_dump(mode="json"), indent=2)
        prompt = f"""Transform this research synthesis into the requested format:

{payload}

Output Template/Requirements:
{output_template}

Generate the output according to the template while maintaining accuracy and insights."""
        return await self.gateway.complete_for("custom_output", None, prompt, cancel, deadline)
