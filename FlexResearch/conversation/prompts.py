"""
Prompt builders for the configuration conversation.
"""

from __future__ import annotations

import json
from typing import Optional, Sequence, TYPE_CHECKING

from ..models.research import ConfigurationSnapshot

if TYPE_CHECKING:
    from .session import ConversationTurn


ROLE_LABELS = {"initiator": "user", "responder": "assistant"}


def render_history(turns: Sequence["ConversationTurn"]) -> str:
    """Full turn history as 'role: text' blocks."""
    return "\n\n".join(f"{ROLE_LABELS.get(t.role.value, t.role.value)}: {t.text}" for t in turns)


def clarify_system_prompt(topic: str, hint: Optional[str]) -> str:
    note = ""
    if hint:
        note = f"\nNote: Based on the description, this seems like {hint.replace('_', ' ')} research."
    return f"""You are a research configuration assistant helping users define their research needs.
Your goal is to understand their requirements and build a comprehensive research configuration.

Current understanding:
- Topic: {topic}
- Suggested domain: {hint or 'custom'}

Ask clarifying questions to understand:
1. The specific research goals
2. Target audience and their needs
3. Key aspects/dimensions to investigate
4. Desired output format and depth
5. Any constraints or special requirements

Be conversational but efficient. Ask 2-3 focused questions at a time.{note}"""


def clarify_user_prompt(topic: str) -> str:
    return f"""The user wants to research: "{topic}"

Generate 2-3 clarifying questions to better understand their needs. Be specific and helpful."""


def converse_system_prompt(snapshot: ConfigurationSnapshot) -> str:
    current = json.dumps(snapshot.model_dump(mode="json", exclude_none=True), indent=2)
    return f"""You are a research configuration assistant. Based on the conversation, extract and update the research configuration.

Current configuration:
{current}

Your tasks:
1. Extract new information from the user's response
2. Update the configuration accordingly
3. Identify what key information is still missing
4. Ask follow-up questions or confirm the configuration is complete

If you have enough information to proceed, summarize the configuration and ask for confirmation."""


def converse_user_prompt(history: str) -> str:
    return f"""Conversation history:
{history}

Based on this conversation:
1. Extract configuration details from the latest response
2. Determine what's still needed
3. Generate appropriate follow-up questions or confirmation"""


def extraction_prompt(history: str) -> str:
    return f"""Extract structured configuration from this conversation:
{history}

Respond with only a JSON object with these fields (only include fields that were clearly specified):
{{
  "domain": "market_research|academic_research|competitive_analysis|technology_assessment|policy_research|investment_analysis|custom",
  "audience": ["array of audience types mentioned"],
  "perspective": "business|technical|academic|etc",
  "dimensions": ["array of research aspects to investigate"],
  "output_format": "comparison|deep_dive|recommendation|survey|synthesis|executive_summary",
  "constraints": {{"any": "mentioned constraints"}},
  "is_complete": true/false
}}"""


def dimensions_prompt(history: str) -> str:
    return f"""Based on this research discussion, generate 3-5 research dimensions.

Conversation:
{history}

For each dimension, provide:
1. A clear name
2. A description
3. 3-4 evaluation criteria
4. 3-4 specific data points to collect

Respond with only a JSON array of objects with keys "name", "description", "evaluation_criteria" and "data_points"."""
