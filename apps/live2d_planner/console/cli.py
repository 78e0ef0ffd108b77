from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict

import httpx
from pydantic import ValidationError

from apps.live2d_planner.core.logger import setup_logger
from apps.live2d_planner.core.settings import load_settings
from apps.live2d_planner.core.types import TimelineRequest, timeline_to_json_dict
from apps.live2d_planner.llm.clients import build_llm
from apps.live2d_planner.orchestrator.planner import TimelinePlanner
from apps.live2d_planner.timeline.catalog import parse_catalog, parse_result_to_json_dict


def _print(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _read_json(path: str) -> Dict[str, Any]:
    obj = json.loads(Path(path).read_text(encoding="utf-8-sig"))
    if not isinstance(obj, dict):
        raise SystemExit(f"{path}: expected a JSON object")
    return obj


def _load_request(args: argparse.Namespace) -> Dict[str, Any]:
    payload = _read_json(args.request)
    if getattr(args, "catalog", None):
        payload["parameterCatalog"] = Path(args.catalog).read_text(encoding="utf-8-sig")
    if getattr(args, "fps", None) is not None:
        payload["fps"] = args.fps
    return payload


def _cmd_plan(args: argparse.Namespace) -> int:
    settings = load_settings()
    logger = setup_logger(name="live2d_planner", logs_dir=settings.logs_dir, level=settings.log_level)
    try:
        req = TimelineRequest.model_validate(_load_request(args))
    except ValidationError as e:
        logger.error("bad request: %s", e)
        return 2

    planner = TimelinePlanner(
        llm=None if args.offline else build_llm(settings),
        max_params=settings.max_params,
        timeline_max_output_tokens=settings.timeline_max_output_tokens,
    )
    report = planner.run(
        words=req.words,
        visemes=req.visemes,
        catalog_text=req.parameter_catalog,
        fps=req.fps,
        strategy=req.strategy,
    )
    if args.report:
        _print(
            {
                "source": report.source,
                "reason": report.reason,
                "elapsed_ms": report.elapsed_ms,
                "definitions": report.definitions,
                "dropped_lines": report.dropped_lines,
                "truncated": report.truncated,
                "hints": report.hints,
                "timeline": timeline_to_json_dict(report.timeline),
            }
        )
    else:
        _print(timeline_to_json_dict(report.timeline))
    return 0


def _cmd_parse_catalog(args: argparse.Namespace) -> int:
    text = Path(args.catalog).read_text(encoding="utf-8-sig")
    _print(parse_result_to_json_dict(parse_catalog(text)))
    return 0


def _cmd_remote(args: argparse.Namespace) -> int:
    payload = _load_request(args)
    with httpx.Client(timeout=float(args.timeout)) as client:
        r = client.post(f"{args.base_url}/live2d_timeline", json=payload)
        r.raise_for_status()
        _print(r.json())
    return 0


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Live2D timeline planner (CLI)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_plan = sub.add_parser("plan", help="Plan a timeline locally")
    ap_plan.add_argument("request", help="Path to a request JSON (words, visemes, ...)")
    ap_plan.add_argument("--catalog", default=None, help="Catalog text file (overrides parameterCatalog)")
    ap_plan.add_argument("--fps", type=float, default=None)
    ap_plan.add_argument("--offline", action="store_true", help="Skip the LLM and use the rule-based fallback")
    ap_plan.add_argument("--report", action="store_true", help="Print provenance along with the timeline")

    ap_cat = sub.add_parser("parse-catalog", help="Show how a catalog file is parsed")
    ap_cat.add_argument("catalog")

    ap_remote = sub.add_parser("remote", help="Post a request to a running server")
    ap_remote.add_argument("request")
    ap_remote.add_argument("--base-url", default="http://127.0.0.1:8787")
    ap_remote.add_argument("--catalog", default=None)
    ap_remote.add_argument("--fps", type=float, default=None)
    ap_remote.add_argument("--timeout", type=float, default=60.0)

    args = ap.parse_args(argv)

    if args.cmd == "plan":
        return _cmd_plan(args)
    if args.cmd == "parse-catalog":
        return _cmd_parse_catalog(args)
    if args.cmd == "remote":
        return _cmd_remote(args)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
