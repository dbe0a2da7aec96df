"""
Research templates and the keyword-overlap domain hint.

Four built-in templates carry default dimensions, audience, quality checks
and example questions. `suggest_domain` picks the template whose keyword
list overlaps an initial description the most.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from pydantic import BaseModel

from ..models.research import (
    QualityCheckConfig,
    QualityCheckType,
    ResearchDimension,
    ResearchDomain,
)


# Declaration order is the tie-break order.
DOMAIN_KEYWORDS: dict[str, list[str]] = {
    "market_research": ["market", "customers", "competition", "opportunity", "demand", "growth"],
    "academic_research": ["literature", "research", "theory", "study", "academic", "papers"],
    "competitive_analysis": ["competitors", "competitive", "rivalry", "positioning", "strategy"],
    "technology_assessment": ["technology", "technical", "software", "platform", "tool", "system"],
}


def suggest_domain(
    text: str,
    keywords: Mapping[str, Sequence[str]] = DOMAIN_KEYWORDS,
) -> Optional[str]:
    """
    Domain whose keyword list best overlaps `text`.

    Score is the number of keywords found as case-insensitive substrings.
    Only a strictly higher score replaces the current best, so ties go to the
    domain declared first. Returns None when nothing matches.
    """
    lowered = text.lower()
    best_domain: Optional[str] = None
    best_score = 0

    for domain, domain_keywords in keywords.items():
        score = sum(1 for keyword in domain_keywords if keyword.lower() in lowered)
        if score > best_score:
            best_domain, best_score = domain, score

    return best_domain


class ResearchTemplate(BaseModel):
    """Defaults for a research domain."""

    id: str
    name: str
    domain: ResearchDomain
    description: str
    default_dimensions: tuple[ResearchDimension, ...]
    default_audience: tuple[str, ...] = ()
    default_quality_checks: tuple[QualityCheckConfig, ...] = ()
    example_questions: tuple[str, ...] = ()

    model_config = {"extra": "forbid", "frozen": True}


def _dim(id: str, name: str, description: str, criteria: list[str], data_points: list[str], weight: float) -> ResearchDimension:
    return ResearchDimension(
        id=id,
        name=name,
        description=description,
        evaluation_criteria=criteria,
        data_points=data_points,
        weight=weight,
    )


def _check(type: str, criteria: list[str], threshold: float) -> QualityCheckConfig:
    return QualityCheckConfig(type=QualityCheckType(type), criteria=criteria, threshold=threshold)


RESEARCH_TEMPLATES: dict[str, ResearchTemplate] = {
    "market_research": ResearchTemplate(
        id="market_research",
        name="Market Research",
        domain=ResearchDomain.MARKET_RESEARCH,
        description="Comprehensive market analysis for products, services, or technologies",
        default_dimensions=(
            _dim("market_size", "Market Size & Growth",
                 "Current market size, growth rate, and future projections",
                 ["Total addressable market", "Growth rate", "Market maturity"],
                 ["Market value", "CAGR", "Key drivers", "Market segments"], 0.2),
            _dim("competitive_landscape", "Competitive Landscape",
                 "Key players, market share, and competitive dynamics",
                 ["Number of competitors", "Market concentration", "Competitive intensity"],
                 ["Major players", "Market share", "Competitive advantages", "Entry barriers"], 0.25),
            _dim("customer_analysis", "Customer Analysis",
                 "Target customers, needs, and buying behavior",
                 ["Customer segments", "Pain points", "Willingness to pay"],
                 ["Demographics", "Psychographics", "Buying process", "Decision criteria"], 0.25),
            _dim("market_trends", "Market Trends & Opportunities",
                 "Emerging trends, opportunities, and threats",
                 ["Trend strength", "Opportunity size", "Risk factors"],
                 ["Technology trends", "Regulatory changes", "Social shifts", "Economic factors"], 0.3),
        ),
        default_audience=("investors", "executives", "product_managers"),
        default_quality_checks=(
            _check("completeness", ["All dimensions covered", "Data recency", "Geographic coverage"], 0.8),
            _check("accuracy", ["Source credibility", "Data consistency", "Methodology soundness"], 0.85),
        ),
        example_questions=(
            "What is the target market for this product/service?",
            "What time period should the analysis cover?",
            "Which geographic regions are most important?",
            "Are there specific competitors you want to focus on?",
        ),
    ),
    "academic_research": ResearchTemplate(
        id="academic_research",
        name="Academic Literature Review",
        domain=ResearchDomain.ACADEMIC_RESEARCH,
        description="Systematic review of academic literature on a specific topic",
        default_dimensions=(
            _dim("theoretical_frameworks", "Theoretical Frameworks",
                 "Key theories, models, and conceptual frameworks",
                 ["Framework relevance", "Theoretical evolution", "Framework adoption"],
                 ["Core theories", "Key authors", "Framework applications", "Theoretical gaps"], 0.25),
            _dim("methodology_review", "Research Methodologies",
                 "Common research methods and approaches",
                 ["Method appropriateness", "Rigor", "Innovation"],
                 ["Quantitative methods", "Qualitative approaches", "Mixed methods", "Sampling strategies"], 0.2),
            _dim("key_findings", "Key Research Findings",
                 "Major discoveries and empirical results",
                 ["Finding consistency", "Evidence strength", "Practical significance"],
                 ["Consensus findings", "Controversial results", "Meta-analyses", "Replications"], 0.3),
            _dim("research_gaps", "Research Gaps & Future Directions",
                 "Identified gaps and opportunities for future research",
                 ["Gap significance", "Feasibility", "Impact potential"],
                 ["Methodological gaps", "Theoretical gaps", "Empirical gaps", "Proposed directions"], 0.25),
        ),
        default_audience=("researchers", "academics", "graduate_students"),
        default_quality_checks=(
            _check("completeness", ["Literature coverage", "Time span adequacy", "Source diversity"], 0.85),
            _check("bias", ["Publication bias", "Geographic bias", "Methodological bias"], 0.8),
        ),
        example_questions=(
            "What specific aspect of the topic interests you most?",
            "What time period should the literature review cover?",
            "Are there specific journals or conferences to prioritize?",
            "Do you need a theoretical or empirical focus?",
        ),
    ),
    "competitive_analysis": ResearchTemplate(
        id="competitive_analysis",
        name="Competitive Analysis",
        domain=ResearchDomain.COMPETITIVE_ANALYSIS,
        description="In-depth analysis of competitive landscape and positioning",
        default_dimensions=(
            _dim("competitor_profiles", "Competitor Profiles",
                 "Detailed analysis of key competitors",
                 ["Market position", "Financial strength", "Strategic focus"],
                 ["Company overview", "Products/services", "Market share", "Key metrics"], 0.2),
            _dim("competitive_positioning", "Competitive Positioning",
                 "Relative strengths, weaknesses, and market positioning",
                 ["Differentiation", "Value proposition", "Brand strength"],
                 ["USPs", "Pricing strategy", "Target segments", "Brand perception"], 0.25),
            _dim("strategic_analysis", "Strategic Analysis",
                 "Competitive strategies and future moves",
                 ["Strategy clarity", "Execution capability", "Innovation potential"],
                 ["Growth strategies", "R&D focus", "Partnership strategies", "M&A activity"], 0.3),
            _dim("competitive_dynamics", "Competitive Dynamics",
                 "Market dynamics and competitive responses",
                 ["Market stability", "Competitive intensity", "Disruption risk"],
                 ["Competitive moves", "Market reactions", "Entry threats", "Substitute threats"], 0.25),
        ),
        default_audience=("executives", "strategy_teams", "product_managers"),
        default_quality_checks=(
            _check("accuracy", ["Data currency", "Source reliability", "Fact verification"], 0.9),
            _check("depth", ["Analysis depth", "Insight quality", "Strategic relevance"], 0.85),
        ),
        example_questions=(
            "Who are your main competitors?",
            "What aspects of competition are most important?",
            "What is your current market position?",
            "What strategic decisions does this need to inform?",
        ),
    ),
    "technology_assessment": ResearchTemplate(
        id="technology_assessment",
        name="Technology Assessment",
        domain=ResearchDomain.TECHNOLOGY_ASSESSMENT,
        description="Evaluation of technologies for adoption or investment",
        default_dimensions=(
            _dim("technical_capabilities", "Technical Capabilities",
                 "Core features, performance, and technical specifications",
                 ["Feature completeness", "Performance metrics", "Scalability"],
                 ["Key features", "Performance benchmarks", "Architecture", "Limitations"], 0.3),
            _dim("market_readiness", "Market Readiness",
                 "Maturity, adoption rate, and ecosystem support",
                 ["Technology maturity", "Market adoption", "Ecosystem strength"],
                 ["TRL level", "User base", "Community support", "Integration options"], 0.25),
            _dim("implementation_factors", "Implementation Considerations",
                 "Cost, complexity, and resource requirements",
                 ["Implementation cost", "Complexity", "Resource needs"],
                 ["TCO", "Learning curve", "Infrastructure needs", "Support requirements"], 0.25),
            _dim("future_potential", "Future Potential",
                 "Innovation trajectory and long-term viability",
                 ["Innovation rate", "Vendor stability", "Future roadmap"],
                 ["R&D investment", "Patent activity", "Roadmap", "Industry backing"], 0.2),
        ),
        default_audience=("ctos", "technical_teams", "innovation_managers"),
        default_quality_checks=(
            _check("accuracy", ["Technical accuracy", "Benchmark validity", "Source expertise"], 0.9),
            _check("consistency", ["Metric consistency", "Comparison fairness", "Evaluation objectivity"], 0.85),
        ),
        example_questions=(
            "What is the primary use case for this technology?",
            "What are your technical requirements?",
            "What is your implementation timeline?",
            "Do you have specific vendors in mind?",
        ),
    ),
}


DEFAULT_QUALITY_CHECKS: tuple[QualityCheckConfig, ...] = (
    _check("completeness", ["All dimensions covered", "Sufficient depth", "Key questions answered"], 0.8),
    _check("consistency", ["Internal consistency", "Source agreement", "Logic validity"], 0.85),
    _check("bias", ["Source diversity", "Perspective balance", "Confirmation bias check"], 0.75),
)

FALLBACK_DIMENSIONS: tuple[ResearchDimension, ...] = (
    _dim("dimension_1", "Core Analysis", "Primary research focus area",
         ["Relevance", "Depth", "Evidence quality"],
         ["Key findings", "Supporting data", "Examples"], 0.4),
    _dim("dimension_2", "Context & Background", "Contextual information and background",
         ["Comprehensiveness", "Relevance", "Currency"],
         ["Historical context", "Current state", "Related factors"], 0.3),
    _dim("dimension_3", "Implications & Applications", "Practical implications and applications",
         ["Practicality", "Impact", "Feasibility"],
         ["Use cases", "Benefits", "Challenges", "Recommendations"], 0.3),
)


def get_template(domain: Optional[str]) -> Optional[ResearchTemplate]:
    """Template for a domain tag, or None."""
    if not domain:
        return None
    return RESEARCH_TEMPLATES.get(domain)


def list_templates() -> list[ResearchTemplate]:
    return list(RESEARCH_TEMPLATES.values())
