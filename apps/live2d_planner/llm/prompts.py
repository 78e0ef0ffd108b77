from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from apps.live2d_planner.core.types import ParameterDefinition, VisemeEvent, WordBoundary


def _fmt_num(v: float) -> str:
    if float(v).is_integer() and abs(v) < 1e15:
        return str(int(v))
    return repr(float(v))


def glossary_line(d: ParameterDefinition) -> str:
    line = f"- {d.id} [{_fmt_num(d.minimum)}, {_fmt_num(d.maximum)}]"
    if d.is_categorical:
        line += " (toggle-like)"
    if d.note:
        line += f" — {d.note}"
    return line


def build_glossary(defs: Sequence[ParameterDefinition]) -> str:
    return "\n".join(glossary_line(d) for d in defs)


def build_timeline_system_prompt(defs: Sequence[ParameterDefinition]) -> str:
    return "\n".join(
        [
            "You control a Live2D avatar by adjusting numeric parameters.",
            "Output a SINGLE JSON object with either:",
            '- Keyframes: {"mode":"keyframes","keyframes":[{"timeMs":<ms>,"params":{"<ParamId>":<number>}}, ...]}',
            '- OR fixed fps: {"mode":"fixed_fps","fixedFps":{"dtMs":<ms_per_frame>,"frames":[{"<ParamId>":<number>}, ...]}}',
            "Rules:",
            "- Use ONLY parameters from the glossary; keep values within [min,max].",
            "- Snap toggle-like params to integers. Do NOT set ParamMouthOpenY (audio drives mouth).",
            "- Use word/viseme timing for subtle brows/eyes/head/accessories.",
            "- Use punctuation (! ? .) for light nods/blinks; keep subtle.",
            "- If hints.angry is true, prefer visible anger cues (veins, stronger brow tilt) using available glossary params.",
            "",
            "Parameter glossary:",
            build_glossary(defs),
        ]
    )


def build_timeline_user_content(
    *,
    words: Sequence[WordBoundary],
    visemes: Sequence[VisemeEvent],
    fps: float,
    strategy: str,
    hints: Dict[str, bool],
) -> str:
    payload: Dict[str, Any] = {
        "words": [w.model_dump(mode="json", by_alias=True) for w in words],
        "visemes": [v.model_dump(mode="json", by_alias=True) for v in visemes],
        "fps": fps,
        "strategy": strategy,
        "hints": dict(hints),
    }
    return json.dumps(payload, ensure_ascii=False)


EMOTION_KEYS = ("happiness", "confused", "annoyed", "angry", "sad")

EMOTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {k: {"type": "number", "minimum": 0, "maximum": 1} for k in EMOTION_KEYS},
    "required": list(EMOTION_KEYS),
    "additionalProperties": False,
}

EMOTION_SYSTEM_PROMPT = "\n".join(
    [
        "Return only a compact JSON object of normalized emotion intensities in [0,1].",
        "Emotions: " + ", ".join(EMOTION_KEYS) + ".",
        "No other keys. Be decisive for clear cues.",
    ]
)
