"""Tests for SynthesisAgent and QualityReviewer."""

import asyncio
import json

import pytest

from FlexResearch.config import DEFAULT_PURPOSES, PurposeParameters
from FlexResearch.infrastructure import CancellationToken, CompletionError
from FlexResearch.llm_backends import CompletionGateway
from FlexResearch.models import DimensionResults, QualityReviewResult
from FlexResearch.research.quality_review import (
    DEFAULT_SUGGESTIONS,
    QualityReviewer,
    threshold_issues,
)
from FlexResearch.research.synthesis import (
    DEFAULT_RECOMMENDATIONS,
    UNPARSED_RECOMMENDATIONS,
    SynthesisAgent,
)
from FlexResearch.runtime import Batch

from conftest import (
    REVIEW_PROMPT,
    REVIEW_STRUCTURE_PROMPT,
    SUGGEST_PROMPT,
    SUMMARY_PROMPT,
    SYNTHESIS_PROMPT,
    SYNTHESIS_STRUCTURE_PROMPT,
    make_config,
)


def finished_batch(config, failed=()):
    batch = Batch.from_config(config)
    for unit in batch.units:
        unit.mark_running()
        if unit.dimension.id in failed:
            unit.mark_failed("CompletionError (other): down")
        else:
            unit.mark_completed(DimensionResults(
                dimension_id=unit.dimension.id,
                findings={"summary": f"findings for {unit.dimension.name}"},
                evidence=["e1"],
                confidence=0.8,
            ))
    return batch


def structured_synthesis(**overrides):
    payload = {
        "cross_dimension_insights": ["Costs fall as adoption rises"],
        "recommendations": {"primary": "Pilot in two regions", "supporting": ["Track costs"], "confidence": 0.8},
    }
    payload.update(overrides)
    return json.dumps(payload)


# === Synthesis ===

def test_synthesis_with_executive_summary(gateway, service):
    config = make_config(3, output_format="synthesis")
    batch = finished_batch(config, failed={"dim_2"})
    service.route(SYNTHESIS_PROMPT, "Integrated narrative")
    service.route(SYNTHESIS_STRUCTURE_PROMPT, structured_synthesis())
    service.route(SUMMARY_PROMPT, "Short summary")

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, batch))

    assert len(service.calls) == 3
    assert set(synthesis.dimension_findings) == {"dim_1", "dim_3"}
    assert "Dimension 2" not in service.calls[0][1]
    assert synthesis.cross_dimension_insights == ["Costs fall as adoption rises"]
    assert synthesis.recommendations.primary == "Pilot in two regions"
    assert synthesis.executive_summary == "Short summary"
    assert synthesis.narrative == "Integrated narrative"
    assert synthesis.error is None


def test_comparison_format_skips_summary(gateway, service):
    config = make_config(2, output_format="comparison")
    service.route(SYNTHESIS_STRUCTURE_PROMPT, structured_synthesis())

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config)))

    assert len(service.calls) == 2
    assert service.calls_matching(SUMMARY_PROMPT) == []
    assert synthesis.executive_summary is None


def test_malformed_structure_falls_back(gateway, service):
    config = make_config(2)
    narrative = "n" * 300
    service.route(SYNTHESIS_PROMPT, narrative).route(SYNTHESIS_STRUCTURE_PROMPT, "no json")

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config)))

    assert synthesis.cross_dimension_insights == ["n" * 200 + "..."]
    assert synthesis.recommendations == UNPARSED_RECOMMENDATIONS


def test_camel_case_insights_and_missing_recommendations(gateway, service):
    config = make_config(2)
    service.route(SYNTHESIS_STRUCTURE_PROMPT, json.dumps({"crossDimensionInsights": ["A", "B"]}))

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config)))

    assert synthesis.cross_dimension_insights == ["A", "B"]
    assert synthesis.recommendations == DEFAULT_RECOMMENDATIONS


def test_synthesis_failure_is_reported_not_raised(gateway, service):
    config = make_config(2)
    service.route(SYNTHESIS_PROMPT, CompletionError("upstream down"))

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config)))

    assert synthesis.error == "Synthesis failed (other): upstream down"
    assert set(synthesis.dimension_findings) == {"dim_1", "dim_2"}


def test_cancelled_synthesis_is_reported(gateway, service):
    config = make_config(1)
    token = CancellationToken()
    token.cancel("operator")

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config), cancel=token))

    assert synthesis.error == "Synthesis cancelled (operator)"
    assert service.calls == []


def test_summary_failure_keeps_synthesis(gateway, service):
    config = make_config(2, output_format="executive_summary")
    service.route(SYNTHESIS_STRUCTURE_PROMPT, structured_synthesis())
    service.route(SUMMARY_PROMPT, CompletionError("timeout"))

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config)))

    assert synthesis.executive_summary == "Executive summary generation failed."
    assert synthesis.recommendations.primary == "Pilot in two regions"


def test_review_is_fed_into_synthesis(gateway, service):
    config = make_config(1)
    review = QualityReviewResult(overall_score=0.65, recommendations=["Add sources"])

    synthesis = asyncio.run(SynthesisAgent(gateway).synthesize(config, finished_batch(config), review=review))

    prompt = service.calls_matching(SYNTHESIS_PROMPT)[0]
    assert "Overall Score: 0.65" in prompt
    assert synthesis.quality_review == review


def test_render_custom(gateway, service):
    config = make_config(1)
    service.route(SYNTHESIS_STRUCTURE_PROMPT, structured_synthesis())
    agent = SynthesisAgent(gateway)
    synthesis = asyncio.run(agent.synthesize(config, finished_batch(config)))
    service.route("Output Template/Requirements", "Custom rendering")

    text = asyncio.run(agent.render_custom(synthesis, "One slide, three bullets"))

    assert text == "Custom rendering"
    assert "One slide, three bullets" in service.calls[-1][1]
    params = service.calls[-1][2]
    assert (params.temperature, params.max_tokens) == (0.3, 3000)


def test_render_custom_uses_its_own_parameters(service, admission, clock):
    gateway = CompletionGateway(
        service,
        admission,
        sleep=clock.sleep,
        purposes={**DEFAULT_PURPOSES, "custom_output": PurposeParameters(temperature=0.9, max_tokens=500)},
    )
    config = make_config(1)
    synthesis = SynthesisAgent(gateway).build_synthesis(config, {}, None, "text", "{}")

    asyncio.run(SynthesisAgent(gateway).render_custom(synthesis, "Bullets"))

    params = service.calls[-1][2]
    assert (params.temperature, params.max_tokens) == (0.9, 500)


# === Quality review ===

def test_threshold_issue_severity(quality_checks):
    issues = threshold_issues(quality_checks, 0.7)

    assert [(i.type, i.severity) for i in issues] == [("completeness", "medium"), ("bias", "low")]
    assert issues[0].description == "Quality check 'completeness' below threshold (0.70 < 0.8)"
    assert issues[0].suggestion == "Review coverage"
    assert threshold_issues(quality_checks, 0.5)[0].severity == "high"
    assert threshold_issues(quality_checks, 0.8) == []


def test_review_merges_reported_and_threshold_issues(gateway, service, quality_checks):
    config = make_config(2, quality_checks=quality_checks)
    service.route(REVIEW_STRUCTURE_PROMPT, json.dumps({
        "overall_score": 0.7,
        "dimension_scores": {"dim_1": 0.9, "dim_2": 1.5},
        "issues": [
            {"type": "gap", "severity": "medium", "description": "Thin evidence"},
            {"type": "noise", "severity": "critical", "description": "dropped"},
        ],
        "recommendations": ["Add regional data"],
        "confidence": 0.9,
    }))

    review = asyncio.run(QualityReviewer(gateway).review(config, finished_batch(config).results()))

    assert len(service.calls_matching(REVIEW_PROMPT)) == 1
    assert review.overall_score == 0.7
    assert review.dimension_scores == {"dim_1": 0.9, "dim_2": 1.0}
    assert [i.type for i in review.issues] == ["gap", "completeness", "bias"]
    assert review.recommendations == ["Add regional data"]
    assert review.confidence == 0.9
    assert not review.parse_failure


def test_zero_score_is_kept(gateway, quality_checks):
    config = make_config(1, quality_checks=quality_checks)

    review = QualityReviewer(gateway).build_review(config, '{"overall_score": 0}')

    assert review.overall_score == 0.0
    assert all(i.severity == "high" for i in review.issues)
    assert review.dimension_scores == {"dim_1": 0.7}


def test_malformed_review_falls_back(gateway, service):
    config = make_config(2)
    service.route(REVIEW_STRUCTURE_PROMPT, "Looks fine overall")

    review = asyncio.run(QualityReviewer(gateway).review(config, {}))

    assert review.parse_failure
    assert review.overall_score == 0.7
    assert review.dimension_scores == {"dim_1": 0.7, "dim_2": 0.7}
    assert review.confidence == 0.6
    assert review.issues[0].type == "parse_error"


def test_review_service_errors_propagate(gateway, service):
    service.route(REVIEW_PROMPT, CompletionError("down"))

    with pytest.raises(CompletionError):
        asyncio.run(QualityReviewer(gateway).review(make_config(1), {}))


def test_high_score_needs_no_suggestions(gateway, service):
    result = asyncio.run(QualityReviewer(gateway).suggest_improvements(QualityReviewResult(overall_score=0.95)))

    assert result == ["Research meets high quality standards"]
    assert service.calls == []


def test_suggestions_parsed_from_bullets(gateway, service):
    service.route(SUGGEST_PROMPT, "Here are ideas:\n1. Add sources\n- Widen scope\n* Check bias\n")

    result = asyncio.run(QualityReviewer(gateway).suggest_improvements(QualityReviewResult(overall_score=0.6)))

    assert result == ["Add sources", "Widen scope", "Check bias"]


@pytest.mark.parametrize("reply", ["No bullet points here", CompletionError("down")])
def test_suggestions_fall_back(gateway, service, reply):
    service.route(SUGGEST_PROMPT, reply)

    result = asyncio.run(QualityReviewer(gateway).suggest_improvements(QualityReviewResult(overall_score=0.6)))

    assert result == DEFAULT_SUGGESTIONS
