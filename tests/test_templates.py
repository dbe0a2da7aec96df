"""Tests for research templates and the domain hint."""

import pytest

from FlexResearch.conversation import get_template, list_templates, suggest_domain
from FlexResearch.models import ResearchDomain


KEYWORDS = {
    "market_research": ["market", "demand"],
    "academic_research": ["literature", "study"],
}


@pytest.mark.parametrize("text,expected", [
    ("research solar panel recycling", None),
    ("literature review of solar panel recycling studies", "academic_research"),
    ("MARKET demand for recycled silicon", "market_research"),
])
def test_hint_by_keyword_overlap(text, expected):
    assert suggest_domain(text, KEYWORDS) == expected


def test_tie_goes_to_first_declared_domain():
    assert suggest_domain("market study", KEYWORDS) == "market_research"


def test_strictly_higher_score_wins():
    assert suggest_domain("market literature study", KEYWORDS) == "academic_research"


def test_default_keywords():
    assert suggest_domain("which software platform should we adopt") == "technology_assessment"
    assert suggest_domain("") is None


def test_templates_are_well_formed():
    templates = list_templates()

    assert [t.id for t in templates] == [
        "market_research",
        "academic_research",
        "competitive_analysis",
        "technology_assessment",
    ]
    for template in templates:
        assert template.domain == ResearchDomain(template.id)
        assert template.default_dimensions
        ids = [d.id for d in template.default_dimensions]
        assert len(ids) == len(set(ids))


def test_get_template():
    assert get_template("market_research").name == "Market Research"
    assert get_template("policy_research") is None
    assert get_template(None) is None
