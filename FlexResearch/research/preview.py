"""
Markdown preview of a finalized research plan.
"""

from __future__ import annotations

import json

from ..models.research import ResearchConfig
from .prompts import humanize


DEFAULT_PREVIEW_WEIGHT = 0.2


def render_plan_preview(config: ResearchConfig) -> str:
    ctx = config.context
    lines = [
        f"# Research Plan: {config.topic}",
        "",
        f"**Domain**: {humanize(ctx.domain.value)}",
        f"**Audience**: {', '.join(ctx.audience)}",
        f"**Perspective**: {ctx.perspective}",
        f"**Output Format**: {humanize(config.output_format.value)}",
        "",
        "## Research Dimensions",
        "",
    ]

    for dim in config.dimensions:
        # Unweighted dimensions display at the default share
        weight = dim.weight if dim.weight else DEFAULT_PREVIEW_WEIGHT
        lines += [
            f"### {dim.name}",
            dim.description,
            f"- **Evaluation Criteria**: {', '.join(dim.evaluation_criteria)}",
            f"- **Data Points**: {', '.join(dim.data_points)}",
            f"- **Weight**: {weight * 100:.0f}%",
            "",
        ]

    lines += ["## Quality Checks", ""]
    for check in config.quality_checks:
        lines.append(f"- **{check.type.value}**: {', '.join(check.criteria)} (threshold: {check.threshold})")

    if ctx.constraints:
        lines += ["", "## Constraints", "", json.dumps(ctx.constraints, indent=2)]

    return "\n".join(lines) + "\n"
