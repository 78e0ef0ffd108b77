from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Union

from apps.live2d_planner.core.logger import get_logger
from apps.live2d_planner.core.types import (
    DEFAULT_FPS,
    FixedFpsTimeline,
    KeyframesTimeline,
    ParameterDefinition,
    VisemeEvent,
    WordBoundary,
)
from apps.live2d_planner.llm.clients import IJsonLLM
from apps.live2d_planner.llm.prompts import build_timeline_system_prompt, build_timeline_user_content
from apps.live2d_planner.timeline.candidate import InvalidCandidate, parse_candidate_text
from apps.live2d_planner.timeline.catalog import parse_catalog
from apps.live2d_planner.timeline.clamp import clamp_timeline, timeline_is_empty
from apps.live2d_planner.timeline.fallback import FallbackRig, synthesize_fallback
from apps.live2d_planner.timeline.hints import detect_intensity_hints, join_word_text

DEFAULT_MAX_PARAMS = 280

AnyTimeline = Union[KeyframesTimeline, FixedFpsTimeline]


@dataclass
class PlanReport:
    timeline: AnyTimeline
    source: str  # "llm" | "fallback"
    reason: str
    elapsed_ms: int = 0
    definitions: int = 0
    dropped_lines: int = 0
    truncated: bool = False
    hints: Dict[str, bool] = field(default_factory=dict)


@dataclass
class TimelinePlanner:
    """Catalog -> candidate plan -> shape check -> clamp, else rule-based fallback.

    Holds no per-request state; one instance can serve concurrent requests.
    """

    llm: Optional[IJsonLLM] = None
    max_params: int = DEFAULT_MAX_PARAMS
    timeline_max_output_tokens: int = 5000
    rig: FallbackRig = field(default_factory=FallbackRig)
    logger: logging.Logger = field(default_factory=lambda: get_logger("live2d_planner.planner"))

    def plan(
        self,
        *,
        words: Sequence[WordBoundary],
        visemes: Sequence[VisemeEvent],
        catalog_text: str,
        fps: float = DEFAULT_FPS,
        strategy: str = "auto",
    ) -> AnyTimeline:
        return self.run(
            words=words, visemes=visemes, catalog_text=catalog_text, fps=fps, strategy=strategy
        ).timeline

    def run(
        self,
        *,
        words: Sequence[WordBoundary],
        visemes: Sequence[VisemeEvent],
        catalog_text: str,
        fps: float = DEFAULT_FPS,
        strategy: str = "auto",
    ) -> PlanReport:
        t0 = time.perf_counter()

        catalog = parse_catalog(catalog_text)
        if catalog.dropped or catalog.duplicates:
            self.logger.debug("catalog: dropped=%d duplicates=%d", catalog.dropped, catalog.duplicates)

        report = PlanReport(
            timeline=FixedFpsTimeline(),
            source="fallback",
            reason="",
            definitions=len(catalog.definitions),
            dropped_lines=catalog.dropped,
        )

        if not catalog.definitions:
            return self._fallback(report, t0=t0, reason="empty_catalog", words=words, visemes=visemes, defs=[], fps=fps)

        # Caps prompt size and validation cost; later ids are invisible to this request.
        limit = max(1, int(self.max_params))
        trimmed = list(catalog.definitions[:limit])
        report.truncated = len(catalog.definitions) > len(trimmed)
        if report.truncated:
            self.logger.info("catalog truncated: %d -> %d params", len(catalog.definitions), len(trimmed))

        report.hints = detect_intensity_hints(join_word_text(w.text for w in words))

        if self.llm is None:
            return self._fallback(
                report, t0=t0, reason="llm_unavailable", words=words, visemes=visemes, defs=trimmed, fps=fps
            )

        try:
            text = self.llm.complete_json(
                system_prompt=build_timeline_system_prompt(trimmed),
                user_content=build_timeline_user_content(
                    words=words, visemes=visemes, fps=fps, strategy=strategy, hints=report.hints
                ),
                max_output_tokens=self.timeline_max_output_tokens,
            )
        except Exception as e:
            err = f"{type(e).__name__}: {e}"[:200]
            self.logger.warning("timeline generation failed: %s", err)
            return self._fallback(
                report, t0=t0, reason="llm_error|" + type(e).__name__, words=words, visemes=visemes, defs=trimmed, fps=fps
            )

        candidate = parse_candidate_text(text)
        if isinstance(candidate, InvalidCandidate):
            self.logger.warning("timeline candidate rejected: %s", candidate.reason)
            return self._fallback(
                report, t0=t0, reason=candidate.reason, words=words, visemes=visemes, defs=trimmed, fps=fps
            )

        safe = clamp_timeline(candidate, trimmed)
        if timeline_is_empty(safe):
            self.logger.warning("timeline candidate empty after clamping")
            return self._fallback(
                report, t0=t0, reason="empty_after_clamp", words=words, visemes=visemes, defs=trimmed, fps=fps
            )

        report.timeline = safe
        report.source = "llm"
        report.reason = "ok"
        report.elapsed_ms = int((time.perf_counter() - t0) * 1000)
        self.logger.info("timeline planned: source=llm mode=%s elapsed_ms=%d", safe.mode, report.elapsed_ms)
        return report

    def _fallback(
        self,
        report: PlanReport,
        *,
        t0: float,
        reason: str,
        words: Sequence[WordBoundary],
        visemes: Sequence[VisemeEvent],
        defs: Sequence[ParameterDefinition],
        fps: float,
    ) -> PlanReport:
        fb = synthesize_fallback(words, visemes, defs, fps, rig=self.rig)
        report.timeline = clamp_timeline(fb, defs)
        report.source = "fallback"
        report.reason = reason
        report.elapsed_ms = int((time.perf_counter() - t0) * 1000)
        self.logger.info(
            "timeline planned: source=fallback reason=%s frames=%d elapsed_ms=%d",
            reason,
            len(report.timeline.fixed_fps.frames),
            report.elapsed_ms,
        )
        return report
