"""Rig timeline validation and rule-based synthesis.

Nothing here reads settings or touches the network. Untrusted plans
enter through ``parse_candidate_text`` and leave through ``clamp_timeline``.
"""

from .candidate import FixedFpsCandidate, InvalidCandidate, KeyframesCandidate, parse_candidate, parse_candidate_text
from .catalog import CatalogParseResult, parse_catalog
from .clamp import clamp_timeline, timeline_is_empty
from .fallback import FallbackRig, synthesize_fallback
from .hints import detect_intensity_hints

__all__ = [
    "CatalogParseResult",
    "FallbackRig",
    "FixedFpsCandidate",
    "InvalidCandidate",
    "KeyframesCandidate",
    "clamp_timeline",
    "detect_intensity_hints",
    "parse_candidate",
    "parse_candidate_text",
    "parse_catalog",
    "synthesize_fallback",
    "timeline_is_empty",
]
