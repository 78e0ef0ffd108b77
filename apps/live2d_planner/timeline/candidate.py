from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Union

from apps.live2d_planner.core.types import FixedFpsTimeline, KeyframesTimeline


@dataclass(frozen=True)
class KeyframesCandidate:
    """Untrusted keyframes plan. Entries are raw JSON values."""

    keyframes: List[Any] = field(default_factory=list)
    mode: str = "keyframes"


@dataclass(frozen=True)
class FixedFpsCandidate:
    """Untrusted fixed-rate plan. ``dt_ms`` and frames are raw JSON values."""

    dt_ms: Any = None
    frames: List[Any] = field(default_factory=list)
    mode: str = "fixed_fps"


@dataclass(frozen=True)
class InvalidCandidate:
    reason: str


Candidate = Union[KeyframesCandidate, FixedFpsCandidate]
CandidateResult = Union[KeyframesCandidate, FixedFpsCandidate, InvalidCandidate]


def _strip_fences(text: str) -> str:
    content = text.strip()
    # LLMs sometimes wrap JSON in ```json ... ``` fences despite being told not to.
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def _extract_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return json.loads(text[start : end + 1])
    raise ValueError("No JSON found")


def parse_candidate(obj: Any) -> CandidateResult:
    """Check the top-level shape of a generated plan. Never raises."""
    if not isinstance(obj, dict):
        return InvalidCandidate(reason="not_an_object")
    mode = obj.get("mode")
    if mode == "keyframes":
        kfs = obj.get("keyframes")
        if not isinstance(kfs, list):
            return InvalidCandidate(reason="missing_keyframes")
        return KeyframesCandidate(keyframes=list(kfs))
    if mode == "fixed_fps":
        fixed = obj.get("fixedFps")
        frames = fixed.get("frames") if isinstance(fixed, dict) else None
        if not isinstance(frames, list):
            return InvalidCandidate(reason="missing_frames")
        return FixedFpsCandidate(dt_ms=fixed.get("dtMs"), frames=list(frames))
    return InvalidCandidate(reason="unknown_mode")


def parse_candidate_text(text: str) -> CandidateResult:
    """Parse raw collaborator output permissively. Never raises."""
    content = _strip_fences(text or "")
    if not content:
        return InvalidCandidate(reason="empty_response")
    try:
        obj = _extract_json(content)
    except (ValueError, RecursionError):
        return InvalidCandidate(reason="invalid_json")
    return parse_candidate(obj)


def candidate_from_timeline(timeline: Union[KeyframesTimeline, FixedFpsTimeline]) -> Candidate:
    if isinstance(timeline, KeyframesTimeline):
        return KeyframesCandidate(
            keyframes=[{"timeMs": kf.time_ms, "params": dict(kf.params)} for kf in timeline.keyframes]
        )
    return FixedFpsCandidate(
        dt_ms=timeline.fixed_fps.dt_ms,
        frames=[dict(f) for f in timeline.fixed_fps.frames],
    )
