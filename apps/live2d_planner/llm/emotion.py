from __future__ import annotations

import json
import logging
import math
from typing import Any, Dict, Optional

from apps.live2d_planner.core.logger import get_logger
from apps.live2d_planner.core.types import EmotionScores
from apps.live2d_planner.timeline.hints import is_angry_text

from .clients import IJsonLLM
from .prompts import EMOTION_KEYS, EMOTION_SCHEMA, EMOTION_SYSTEM_PROMPT


def _num(v: Any) -> float:
    if isinstance(v, bool):
        return 0.0
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _clamp01(v: Any) -> float:
    return min(1.0, max(0.0, _num(v)))


def apply_angry_override(raw: Dict[str, Any]) -> Dict[str, float]:
    """Rule-based floor/ceilings that guarantee obvious anger reads as anger."""
    out = {k: _num(raw.get(k)) for k in EMOTION_KEYS}
    out["angry"] = max(0.9, out["angry"])
    out["annoyed"] = max(0.6, out["annoyed"])
    out["happiness"] = min(out["happiness"], 0.1)
    out["sad"] = min(out["sad"], 0.2)
    out["confused"] = min(out["confused"], 0.2)
    return out


def score_emotion(
    *,
    text: str,
    llm: Optional[IJsonLLM],
    max_output_tokens: int = 512,
    logger: Optional[logging.Logger] = None,
) -> EmotionScores:
    """Score five emotion intensities in [0,1]. Never raises; failures give zeros."""
    log = logger or get_logger("live2d_planner.emotion")
    raw: Dict[str, Any] = {}
    if llm is not None:
        try:
            out = llm.complete_json(
                system_prompt=EMOTION_SYSTEM_PROMPT,
                user_content=text or "",
                max_output_tokens=max_output_tokens,
                json_schema=EMOTION_SCHEMA,
                schema_name="EmotionScores",
            )
            obj = json.loads(out) if out else {}
            if isinstance(obj, dict):
                raw = obj
        except Exception as e:
            log.warning("emotion scoring failed: %s", f"{type(e).__name__}: {e}"[:220])
            raw = {}

    if is_angry_text(text):
        raw = dict(apply_angry_override(raw))

    return EmotionScores(**{k: _clamp01(raw.get(k)) for k in EMOTION_KEYS})
