from __future__ import annotations

import re
from typing import Dict, Iterable, Pattern, Tuple

# Obvious anger cues; advisory only, never bypasses validation.
ANGRY_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"don'?t\s+piss\s+me\s+off", re.IGNORECASE),
    re.compile(r"\bi['’]?m\s+angry\b", re.IGNORECASE),
    re.compile(r"you'?re\s+one\s+of\s+those\s+delinquents", re.IGNORECASE),
)


def is_angry_text(text: str) -> bool:
    t = text or ""
    return any(p.search(t) for p in ANGRY_PATTERNS)


def detect_intensity_hints(text: str) -> Dict[str, bool]:
    return {"angry": is_angry_text(text)}


def join_word_text(texts: Iterable[str]) -> str:
    return " ".join(t or "" for t in texts)
