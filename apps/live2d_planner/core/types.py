from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

# Hard floor on frame spacing (~125 updates/second at most).
MIN_DT_MS = 8
DEFAULT_FPS = 60.0


@dataclass(frozen=True)
class ParameterDefinition:
    """One rig parameter parsed from the catalog."""

    id: str
    minimum: float
    maximum: float
    default: float = 0.0
    is_categorical: bool = False
    note: str = ""


class BoundaryKind(str, Enum):
    word = "WordBoundary"
    punctuation = "PunctuationBoundary"


_KIND_ALIASES = {
    "word": BoundaryKind.word,
    "wordboundary": BoundaryKind.word,
    "punctuation": BoundaryKind.punctuation,
    "punctuationboundary": BoundaryKind.punctuation,
}


def _number_or_zero(v: Any) -> Any:
    return 0 if v is None else v


class WordBoundary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_ms: float = Field(default=0.0, alias="startMs")
    end_ms: float = Field(default=0.0, alias="endMs")
    text: str = Field(default="")
    kind: BoundaryKind = Field(default=BoundaryKind.word, alias="boundaryType")

    @field_validator("start_ms", "end_ms", mode="before")
    @classmethod
    def _missing_time(cls, v: Any) -> Any:
        return _number_or_zero(v)

    @field_validator("text", mode="before")
    @classmethod
    def _missing_text(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @field_validator("kind", mode="before")
    @classmethod
    def _short_kind(cls, v: Any) -> Any:
        if v is None:
            return BoundaryKind.word
        if isinstance(v, str):
            return _KIND_ALIASES.get(v.strip().lower(), v)
        return v


class VisemeEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_ms: float = Field(default=0.0, alias="startMs")
    viseme_id: int = Field(default=0, alias="visemeId")

    @field_validator("start_ms", "viseme_id", mode="before")
    @classmethod
    def _missing_number(cls, v: Any) -> Any:
        return _number_or_zero(v)


# --- Timeline (wire shapes use camelCase aliases) ---


class Keyframe(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_ms: int = Field(default=0, ge=0, alias="timeMs")
    params: Dict[str, float] = Field(default_factory=dict)


class KeyframesTimeline(BaseModel):
    mode: Literal["keyframes"] = "keyframes"
    keyframes: List[Keyframe] = Field(default_factory=list)


class FixedFps(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dt_ms: int = Field(default=17, ge=MIN_DT_MS, alias="dtMs")
    frames: List[Dict[str, float]] = Field(default_factory=list)


class FixedFpsTimeline(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["fixed_fps"] = "fixed_fps"
    fixed_fps: FixedFps = Field(default_factory=FixedFps, alias="fixedFps")


Timeline = Annotated[Union[KeyframesTimeline, FixedFpsTimeline], Field(discriminator="mode")]

TimelineAdapter: TypeAdapter[Timeline] = TypeAdapter(Timeline)


def timeline_to_json_dict(timeline: Union[KeyframesTimeline, FixedFpsTimeline]) -> Dict[str, Any]:
    return timeline.model_dump(mode="json", by_alias=True)


# --- Requests / responses ---


class TimelineRequest(BaseModel):
    """Body of a timeline planning request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    words: List[WordBoundary]
    visemes: List[VisemeEvent]
    parameter_catalog: str = Field(default="", alias="parameterCatalog")
    fps: float = Field(default=DEFAULT_FPS)
    strategy: str = Field(default="auto")

    @field_validator("parameter_catalog", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("strategy", mode="before")
    @classmethod
    def _strategy_default(cls, v: Any) -> Any:
        return "auto" if v is None or v == "" else v

    @field_validator("fps", mode="before")
    @classmethod
    def _fps_default(cls, v: Any) -> Any:
        return DEFAULT_FPS if v is None else v

    @field_validator("fps")
    @classmethod
    def _fps_finite(cls, v: float) -> float:
        return v if math.isfinite(v) else DEFAULT_FPS


MAX_EMOTION_TEXT_CHARS = 4000


class EmotionIn(BaseModel):
    """Lenient emotion request: any ``text`` becomes a string, long text is cut."""

    text: str = Field(default="")

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("text")
    @classmethod
    def _truncate(cls, v: str) -> str:
        return v[:MAX_EMOTION_TEXT_CHARS]


class EmotionScores(BaseModel):
    happiness: float = Field(default=0.0, ge=0.0, le=1.0)
    confused: float = Field(default=0.0, ge=0.0, le=1.0)
    annoyed: float = Field(default=0.0, ge=0.0, le=1.0)
    angry: float = Field(default=0.0, ge=0.0, le=1.0)
    sad: float = Field(default=0.0, ge=0.0, le=1.0)


class CatalogParseIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parameter_catalog: str = Field(default="", alias="parameterCatalog")
