from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from apps.live2d_planner.core.logger import get_logger
from apps.live2d_planner.core.types import (
    DEFAULT_FPS,
    MIN_DT_MS,
    FixedFps,
    FixedFpsTimeline,
    ParameterDefinition,
    VisemeEvent,
    WordBoundary,
)

from .clamp import round_half_up

_SENTENCE_END = (".", "!", "?")

_log = get_logger("live2d_planner.fallback")


@dataclass(frozen=True)
class FallbackRig:
    """Parameter ids and constants driven by the rule-based idle animation."""

    breath: str = "ParamBreath"
    eye_l_open: str = "ParamEyeLOpen"
    eye_r_open: str = "ParamEyeROpen"
    head_nod: str = "ParamAngleY"

    breath_center: float = 0.5
    breath_amplitude: float = 0.1
    breath_hz: float = 0.33

    blink_period_ms: float = 3500.0
    blink_value: float = 0.1

    nod_value: float = 3.0
    nod_window_ms: float = 200.0

    # Guards against absurd timing input (10 minutes).
    max_duration_ms: float = 600_000.0


def frame_step_ms(fps: float) -> int:
    try:
        f = float(fps)
    except (TypeError, ValueError):
        f = DEFAULT_FPS
    if not math.isfinite(f):
        f = DEFAULT_FPS
    return max(MIN_DT_MS, round_half_up(1000.0 / max(1.0, f)))


def _finite(v: float) -> float:
    return v if math.isfinite(v) else 0.0


def speech_duration_ms(words: Sequence[WordBoundary], visemes: Sequence[VisemeEvent]) -> float:
    dur = 0.0
    for w in words:
        dur = max(dur, _finite(w.end_ms))
    for v in visemes:
        dur = max(dur, _finite(v.start_ms))
    return dur


def is_sentence_end(text: str) -> bool:
    return (text or "").rstrip().endswith(_SENTENCE_END)


def synthesize_fallback(
    words: Sequence[WordBoundary],
    visemes: Sequence[VisemeEvent],
    defs: Sequence[ParameterDefinition],
    fps: float = DEFAULT_FPS,
    rig: Optional[FallbackRig] = None,
) -> FixedFpsTimeline:
    """Subtle idle/reactive animation derived from timing data only.

    Breathing sinusoid, a periodic blink and a small nod near sentence ends.
    Only parameters present in ``defs`` are set. Always yields at least one
    frame (t=0).
    """
    rig = rig or FallbackRig()
    dt = frame_step_ms(fps)
    dur = speech_duration_ms(words, visemes)
    if dur > rig.max_duration_ms:
        _log.warning("fallback capped: speech lasts %.0f ms, animating the first %.0f ms", dur, rig.max_duration_ms)
        dur = rig.max_duration_ms

    ids = {d.id for d in defs}
    has_breath = rig.breath in ids
    has_blink = rig.eye_l_open in ids and rig.eye_r_open in ids
    has_nod = rig.head_nod in ids
    nod_starts = [_finite(w.start_ms) for w in words if is_sentence_end(w.text)] if has_nod else []

    frames: List[Dict[str, float]] = []
    t = 0
    while t <= dur:
        f: Dict[str, float] = {}
        if has_breath:
            f[rig.breath] = rig.breath_center + rig.breath_amplitude * math.sin(
                (t / 1000.0) * 2.0 * math.pi * rig.breath_hz
            )
        if has_blink:
            phase = math.floor(((t / rig.blink_period_ms) % 1.0) * 10)
            if phase == 0:
                f[rig.eye_l_open] = rig.blink_value
                f[rig.eye_r_open] = rig.blink_value
        if has_nod and any(abs(s - t) < rig.nod_window_ms for s in nod_starts):
            f[rig.head_nod] = rig.nod_value
        frames.append(f)
        t += dt

    return FixedFpsTimeline(fixed_fps=FixedFps(dt_ms=dt, frames=frames))
