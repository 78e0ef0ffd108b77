from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from apps.live2d_planner.core.logger import setup_logger
from apps.live2d_planner.core.settings import Settings, load_settings
from apps.live2d_planner.core.types import (
    CatalogParseIn,
    EmotionIn,
    EmotionScores,
    TimelineRequest,
    timeline_to_json_dict,
)
from apps.live2d_planner.llm.clients import IJsonLLM, build_llm
from apps.live2d_planner.llm.emotion import score_emotion
from apps.live2d_planner.orchestrator.planner import TimelinePlanner
from apps.live2d_planner.timeline.catalog import parse_catalog, parse_result_to_json_dict

_UNSET: Any = object()


@dataclass
class Runtime:
    settings: Settings
    llm: Optional[IJsonLLM]
    planner: TimelinePlanner


def _bad_input(message: str = "words[] and visemes[] required") -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "BAD_INPUT", "message": message})


def create_app(*, settings: Optional[Settings] = None, llm: Optional[IJsonLLM] = _UNSET) -> FastAPI:
    """Build the HTTP app. Settings are loaded once here and passed down."""
    settings = settings or load_settings()
    logger = setup_logger(name="live2d_planner", logs_dir=settings.logs_dir, level=settings.log_level)
    if llm is _UNSET:
        llm = build_llm(settings)
    if llm is None:
        logger.warning("no LLM configured for provider=%s; every plan uses the fallback", settings.llm_provider)

    runtime = Runtime(
        settings=settings,
        llm=llm,
        planner=TimelinePlanner(
            llm=llm,
            max_params=settings.max_params,
            timeline_max_output_tokens=settings.timeline_max_output_tokens,
        ),
    )

    app = FastAPI(title="Live2D Timeline Planner")
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "llm_provider": runtime.settings.llm_provider,
            "llm_configured": runtime.llm is not None,
        }

    @app.post("/live2d_timeline")
    def live2d_timeline(payload: Any = Body(default=None)) -> JSONResponse:
        if not isinstance(payload, dict):
            return _bad_input()
        try:
            req = TimelineRequest.model_validate(payload)
        except ValidationError as e:
            logger.info("live2d_timeline bad input: %d validation errors", e.error_count())
            return _bad_input()

        report = runtime.planner.run(
            words=req.words,
            visemes=req.visemes,
            catalog_text=req.parameter_catalog,
            fps=req.fps,
            strategy=req.strategy,
        )
        return JSONResponse(
            content=timeline_to_json_dict(report.timeline),
            headers={"X-Timeline-Source": report.source, "X-Timeline-Reason": report.reason},
        )

    @app.post("/emotion")
    async def emotion(request: Request) -> EmotionScores:
        # Always 200: an unreadable body scores as empty text.
        raw = await request.body()
        try:
            payload = json.loads(raw) if raw else {}
        except (ValueError, RecursionError):
            logger.info("emotion: unparsable body (%d bytes)", len(raw))
            payload = {}
        body = EmotionIn.model_validate(payload if isinstance(payload, dict) else {})
        return await asyncio.to_thread(
            score_emotion,
            text=body.text,
            llm=runtime.llm,
            max_output_tokens=runtime.settings.emotion_max_output_tokens,
        )

    @app.post("/catalog/parse")
    def catalog_parse(body: CatalogParseIn) -> Dict[str, Any]:
        return parse_result_to_json_dict(parse_catalog(body.parameter_catalog))

    return app