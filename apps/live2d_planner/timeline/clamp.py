from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from apps.live2d_planner.core.types import (
    MIN_DT_MS,
    FixedFps,
    FixedFpsTimeline,
    Keyframe,
    KeyframesTimeline,
    ParameterDefinition,
)

from .candidate import Candidate, FixedFpsCandidate, KeyframesCandidate, candidate_from_timeline
from .catalog import index_definitions

_DEFAULT_DT_MS = 1000.0 / 60.0

AnyTimeline = Union[KeyframesTimeline, FixedFpsTimeline]


def round_half_up(x: float) -> int:
    """Nearest integer, halves rounded toward +inf (0.5 -> 1, -0.5 -> 0)."""
    return int(math.floor(x + 0.5))


def _as_number(v: Any) -> Optional[Union[int, float]]:
    # bool is an int subclass but never a parameter value.
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    if isinstance(v, float) and math.isnan(v):
        return None
    return v


def clamp_value(v: Any, d: ParameterDefinition) -> Optional[float]:
    n = _as_number(v)
    if n is None:
        return None
    vv = max(d.minimum, min(d.maximum, n))
    if d.is_categorical:
        return _snap_categorical(float(vv), d)
    return float(vv)


def _snap_categorical(v: float, d: ParameterDefinition) -> float:
    """Nearest integer inside [minimum, maximum].

    A range holding no integer (e.g. [0.2, 0.8]) keeps the rounded value
    clamped back into the range.
    """
    snapped = round_half_up(v)
    lo, hi = math.ceil(d.minimum), math.floor(d.maximum)
    if lo <= hi:
        return float(max(lo, min(hi, snapped)))
    return float(max(d.minimum, min(d.maximum, snapped)))


def clamp_params(values: Any, by_id: Mapping[str, ParameterDefinition]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    if not isinstance(values, dict):
        return out
    for k, v in values.items():
        d = by_id.get(k) if isinstance(k, str) else None
        if d is None:
            continue
        vv = clamp_value(v, d)
        if vv is not None:
            out[k] = vv
    return out


def _time_ms(raw: Any) -> int:
    n = _as_number(raw)
    if n is None:
        return 0
    if isinstance(n, int):
        return max(0, n)
    if not math.isfinite(n):
        return 0
    return max(0, round_half_up(n))


def _dt_ms(raw: Any) -> int:
    n = _as_number(raw)
    if n is None or n == 0 or (isinstance(n, float) and not math.isfinite(n)):
        n = _DEFAULT_DT_MS
    if isinstance(n, int):
        return max(MIN_DT_MS, n)
    return max(MIN_DT_MS, round_half_up(n))


def _keyframe_values(kf: Dict[str, Any]) -> Any:
    params = kf.get("params")
    if params is None:
        # older prompts used "set"
        params = kf.get("set")
    return params


def clamp_timeline(
    timeline: Union[AnyTimeline, Candidate],
    defs: Sequence[ParameterDefinition],
) -> AnyTimeline:
    """Return a new timeline that respects every declared bound.

    Unknown parameter ids and non-numeric values are dropped, values are
    clamped into [min, max] and categorical values snapped to integers.
    Keyframe times become non-negative whole milliseconds and the fixed-rate
    step is at least MIN_DT_MS. The input is never mutated.
    """
    if isinstance(timeline, (KeyframesTimeline, FixedFpsTimeline)):
        timeline = candidate_from_timeline(timeline)
    by_id = index_definitions(defs)

    if isinstance(timeline, KeyframesCandidate):
        keyframes = [
            Keyframe(time_ms=_time_ms(kf.get("timeMs")), params=clamp_params(_keyframe_values(kf), by_id))
            for kf in timeline.keyframes
            if isinstance(kf, dict)
        ]
        return KeyframesTimeline(keyframes=keyframes)

    if isinstance(timeline, FixedFpsCandidate):
        # Keep non-object frames as empty ones so later frames stay on their time slot.
        frames = [clamp_params(f, by_id) for f in timeline.frames]
        return FixedFpsTimeline(fixed_fps=FixedFps(dt_ms=_dt_ms(timeline.dt_ms), frames=frames))

    raise TypeError(f"cannot clamp {type(timeline).__name__}")


def timeline_is_empty(timeline: AnyTimeline) -> bool:
    if isinstance(timeline, KeyframesTimeline):
        return not timeline.keyframes
    return not timeline.fixed_fps.frames
