from .settings import Settings, load_settings
from .types import (
    FixedFpsTimeline,
    KeyframesTimeline,
    ParameterDefinition,
    Timeline,
    TimelineRequest,
    VisemeEvent,
    WordBoundary,
)

__all__ = [
    "Settings",
    "load_settings",
    "FixedFpsTimeline",
    "KeyframesTimeline",
    "ParameterDefinition",
    "Timeline",
    "TimelineRequest",
    "VisemeEvent",
    "WordBoundary",
]
