"""
Prompt builders for research, synthesis and quality review calls.

Each work unit makes two calls: a free-form research call scoped to one
dimension, then a structuring call that restates the research as JSON.
Synthesis and review follow the same research-then-structure shape.
"""

from __future__ import annotations

import json
from typing import Mapping, Optional

from ..models.research import (
    DimensionResults,
    OutputFormat,
    QualityReviewResult,
    ResearchConfig,
    ResearchDimension,
    ResearchSynthesis,
)


OUTPUT_FORMAT_INSTRUCTIONS = {
    OutputFormat.COMPARISON: "Create detailed comparisons across dimensions and options",
    OutputFormat.DEEP_DIVE: "Provide in-depth analysis with comprehensive details",
    OutputFormat.RECOMMENDATION: "Focus on actionable recommendations with supporting rationale",
    OutputFormat.SURVEY: "Present a broad overview covering all key aspects",
    OutputFormat.SYNTHESIS: "Integrate findings into a cohesive narrative with insights",
    OutputFormat.EXECUTIVE_SUMMARY: "Create a concise summary for executive decision-making",
}


def humanize(tag: str) -> str:
    return tag.replace("_", " ")


def _numbered(items) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))


# === Work units ===

def unit_system_prompt(config: ResearchConfig, dimension: ResearchDimension) -> str:
    ctx = config.context
    lines = [
        f"You are an expert research analyst specializing in {humanize(ctx.domain.value)}.",
        f'Your task is to research "{config.topic}" focusing specifically on: {dimension.name}',
        "",
        dimension.description,
        "",
    ]
    if ctx.audience:
        lines.append(f"The research is intended for: {', '.join(ctx.audience)}.")
    if ctx.perspective:
        lines.append(f"Approach this from a {ctx.perspective} perspective.")
    if ctx.constraints:
        lines.append(f"Consider these constraints: {json.dumps(ctx.constraints)}")
    if dimension.evaluation_criteria:
        lines += [
            "",
            "You should evaluate this dimension using these criteria:",
            _numbered(dimension.evaluation_criteria),
        ]
    lines += [
        "",
        "Focus on providing actionable, evidence-based insights that directly address the research goals.",
    ]
    return "\n".join(lines)


def unit_research_prompt(
    config: ResearchConfig,
    dimension: ResearchDimension,
    depth: str = "comprehensive",
    include_sources: bool = True,
) -> str:
    depth_instructions = (
        "Provide a thorough, detailed analysis with extensive examples and evidence."
        if depth == "comprehensive"
        else "Provide a focused analysis covering the key points efficiently."
    )
    parts = [
        f'Research "{config.topic}" for the dimension: {dimension.name}',
        "",
        depth_instructions,
        "",
        "Your research should:",
        _numbered([
            "Address each evaluation criterion with specific findings",
            "Provide concrete evidence and examples",
            "Identify patterns, trends, or insights",
            "Consider the needs of the target audience",
            "Stay within the defined scope and constraints",
        ]),
    ]
    if dimension.data_points:
        parts += ["", "Specifically address these data points:", _numbered(dimension.data_points)]
    if include_sources:
        parts += ["", "Include relevant sources, references, or examples where applicable."]
    parts += [
        "",
        "Format your response as a comprehensive analysis that can be synthesized with other research dimensions.",
    ]
    return "\n".join(parts)


def unit_structuring_prompt(research_text: str, dimension: ResearchDimension) -> str:
    return f"""Extract and structure the research findings from this text:

{research_text}

Respond with only a JSON object with:
1. findings: An object organizing the key findings by theme
2. evidence: Array of specific evidence, examples, or data points (strings)
3. confidence: A score from 0-1 indicating confidence in the findings
4. sources: Array of any mentioned sources or references (strings)
5. metadata: Any additional relevant information

Ensure the structure aligns with the dimension: {dimension.name}"""


# === Synthesis ===

def synthesis_system_prompt(config: ResearchConfig) -> str:
    instructions = OUTPUT_FORMAT_INSTRUCTIONS.get(config.output_format, "Provide a comprehensive analysis")
    return f"""You are an expert research synthesizer specializing in {humanize(config.context.domain.value)}.

Your role is to:
1. Integrate findings across all research dimensions
2. Identify patterns, connections, and insights
3. {instructions}
4. Consider the target audience: {', '.join(config.context.audience)}
5. Maintain the {config.context.perspective} perspective

Focus on actionable insights and clear communication."""


def synthesis_user_prompt(
    config: ResearchConfig,
    findings: Mapping[str, DimensionResults],
    review: Optional[QualityReviewResult] = None,
) -> str:
    parts = [f'Synthesize research findings for: "{config.topic}"', "", "Research Findings by Dimension:", ""]
    for dimension in config.dimensions:
        results = findings.get(dimension.id)
        if results is None:
            continue
        weight = dimension.weight if dimension.weight is not None else "equal"
        parts += [
            f"### {dimension.name} (Weight: {weight})",
            f"Confidence: {results.confidence}",
            f"Key Findings:\n{json.dumps(results.findings, indent=2, default=str)}",
            f"Evidence Points: {'; '.join(results.evidence)}",
            "",
        ]

    if review is not None:
        parts += [
            "Quality Review:",
            f"Overall Score: {review.overall_score}",
            f"Key Issues: {'; '.join(i.description for i in review.issues)}",
            f"Recommendations: {'; '.join(review.recommendations)}",
            "",
        ]

    parts += [
        "Provide a comprehensive synthesis that:",
        _numbered([
            "Integrates findings across all dimensions",
            "Highlights key insights and patterns",
            "Addresses any quality concerns",
            "Provides clear recommendations",
            f"Formats output as: {config.output_format.value}",
        ]),
    ]
    return "\n".join(parts)


def synthesis_structuring_prompt(synthesis_text: str) -> str:
    return f"""Extract structured synthesis from this text:

{synthesis_text}

Respond with only a JSON object:
{{
  "cross_dimension_insights": ["array of key insights connecting multiple dimensions"],
  "recommendations": {{
    "primary": "main recommendation",
    "supporting": ["array of supporting recommendations"],
    "confidence": <number 0-1>
  }}
}}"""


def executive_summary_prompt(config: ResearchConfig, synthesis: ResearchSynthesis) -> str:
    score = synthesis.quality_review.overall_score if synthesis.quality_review else "N/A"
    insights = "\n".join(synthesis.cross_dimension_insights)
    return f"""Create a concise executive summary for this research:

Topic: {config.topic}
Audience: {', '.join(config.context.audience)}

Key Insights:
{insights}

Primary Recommendation: {synthesis.recommendations.primary}
Supporting Recommendations: {'; '.join(synthesis.recommendations.supporting)}

Quality Score: {score}

Create a 3-4 paragraph executive summary that:
1. States the research objective
2. Highlights 2-3 key findings
3. Provides clear recommendations
4. Notes any important caveats or limitations"""


# === Quality review ===

def review_system_prompt(config: ResearchConfig) -> str:
    return f"""You are a research quality assurance specialist. Your role is to:
1. Evaluate the completeness and quality of research findings
2. Identify potential biases, gaps, or inconsistencies
3. Assess the reliability and strength of evidence
4. Provide constructive recommendations for improvement

Research topic: {config.topic}
Research domain: {config.context.domain.value}
Target audience: {', '.join(config.context.audience)}"""


def review_user_prompt(config: ResearchConfig, results: Mapping[str, DimensionResults]) -> str:
    parts = [
        "Review this research and provide a quality assessment:",
        "",
        "Research Configuration:",
        f"- Topic: {config.topic}",
        f"- Domain: {config.context.domain.value}",
        f"- Perspective: {config.context.perspective}",
        "",
        "Research Findings by Dimension:",
        "",
    ]
    for dimension in config.dimensions:
        r = results.get(dimension.id)
        if r is None:
            continue
        parts += [
            f"### {dimension.name}",
            f"Description: {dimension.description}",
            f"Confidence: {r.confidence}",
            "Key Findings:",
            json.dumps(r.findings, indent=2, default=str),
            f"Evidence Points: {len(r.evidence)}",
            f"Sources: {len(r.sources)}",
            "",
        ]

    parts.append("Quality criteria to evaluate:")
    parts += [f"- {qc.type.value}: {', '.join(qc.criteria)}" for qc in config.quality_checks]
    parts += [
        "",
        "Provide:",
        _numbered([
            "Overall quality score (0-1)",
            "Individual dimension scores",
            "Identified issues with severity levels",
            "Specific recommendations for improvement",
            "Confidence in the assessment",
        ]),
    ]
    return "\n".join(parts)


def review_structuring_prompt(review_text: str) -> str:
    return f"""Extract structured quality review data from this assessment:

{review_text}

Respond with only a JSON object:
{{
  "overall_score": <number 0-1>,
  "dimension_scores": {{"<dimension_id>": <score 0-1>}},
  "issues": [
    {{"type": "string", "severity": "low|medium|high", "description": "string", "suggestion": "optional string"}}
  ],
  "recommendations": ["array of recommendation strings"],
  "confidence": <number 0-1>
}}"""


def improvement_prompt(review: QualityReviewResult) -> str:
    issues = "\n".join(f"- {i.severity}: {i.description}" for i in review.issues)
    recommendations = "\n".join(review.recommendations)
    return f"""Based on this quality review, suggest specific improvements:

Issues found:
{issues}

Current recommendations:
{recommendations}

Generate 3-5 specific, actionable suggestions to improve the research quality."""
