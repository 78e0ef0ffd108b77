from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from apps.live2d_planner.core.types import ParameterDefinition

_NUM = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)"
_DASH = r"[—–-]"

# "- Param156 — [0, 1] (default 0, step ~0.01) — Note"
_LINE_RE = re.compile(
    rf"-\s*([A-Za-z0-9_]+)\s*{_DASH}\s*\[\s*({_NUM})\s*,\s*({_NUM})\s*\]"
    rf"(?:\s*\(\s*(?i:default)\s*([^\s,)]*).*?\))?"
    rf"(?:\s*{_DASH}\s*(.*))?$"
)

CATEGORICAL_MARKERS: Tuple[str, ...] = ("piecewise", "toggle", "categor", "discrete", "enum")


@dataclass(frozen=True)
class CatalogParseResult:
    definitions: Tuple[ParameterDefinition, ...] = ()
    dropped: int = 0
    duplicates: int = 0

    @property
    def ids(self) -> list[str]:
        return [d.id for d in self.definitions]


def _finite_or(raw: Optional[str], default: float) -> float:
    try:
        v = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def is_categorical_note(note: str) -> bool:
    low = (note or "").lower()
    return any(m in low for m in CATEGORICAL_MARKERS)


def parse_catalog_line(line: str) -> Optional[ParameterDefinition]:
    """Parse a single catalog line. Returns None when it is not a declaration."""
    m = _LINE_RE.search(line or "")
    if not m:
        return None
    pid, lo_raw, hi_raw, default_raw, note_raw = m.groups()
    lo = _finite_or(lo_raw, math.nan)
    hi = _finite_or(hi_raw, math.nan)
    if math.isnan(lo) or math.isnan(hi):
        return None
    if lo > hi:
        lo, hi = hi, lo
    note = (note_raw or "").strip()
    default = _finite_or(default_raw, 0.0)
    return ParameterDefinition(
        id=pid,
        minimum=lo,
        maximum=hi,
        default=max(lo, min(hi, default)),
        is_categorical=is_categorical_note(note),
        note=note,
    )


def parse_catalog(text: str) -> CatalogParseResult:
    """Turn free-form catalog text into parameter definitions.

    Non-matching lines are skipped and counted in ``dropped`` (blank lines are
    not counted). When an id is declared more than once the last declaration
    wins but keeps the position of the first one.
    """
    by_id: Dict[str, ParameterDefinition] = {}
    dropped = 0
    duplicates = 0
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        d = parse_catalog_line(line)
        if d is None:
            dropped += 1
            continue
        if d.id in by_id:
            duplicates += 1
        by_id[d.id] = d
    return CatalogParseResult(definitions=tuple(by_id.values()), dropped=dropped, duplicates=duplicates)


def index_definitions(defs: Iterable[ParameterDefinition]) -> Dict[str, ParameterDefinition]:
    out: Dict[str, ParameterDefinition] = {}
    for d in defs:
        out[d.id] = d
    return out


def definition_to_json_dict(d: ParameterDefinition) -> Dict[str, object]:
    return {
        "id": d.id,
        "min": d.minimum,
        "max": d.maximum,
        "default": d.default,
        "isCategorical": d.is_categorical,
        "note": d.note,
    }


def parse_result_to_json_dict(result: CatalogParseResult) -> Dict[str, object]:
    return {
        "definitions": [definition_to_json_dict(d) for d in result.definitions],
        "dropped": result.dropped,
        "duplicates": result.duplicates,
    }
