"""
Research output helpers: JSON recovery, prompts, preview.

SynthesisAgent and QualityReviewer live in `research.synthesis` and
`research.quality_review`; they depend on the runtime package and are
imported from there directly.
"""

from .parsing import MalformedOutputError, extract_json, parse_model
from .preview import render_plan_preview

__all__ = [
    "MalformedOutputError",
    "extract_json",
    "parse_model",
    "render_plan_preview",
]
