from __future__ import annotations

import json
import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from apps.live2d_planner.core.types import FixedFpsTimeline, KeyframesTimeline, VisemeEvent, WordBoundary
from apps.live2d_planner.orchestrator.planner import TimelinePlanner

CATALOG = "\n".join(
    [
        "- ParamBreath — [0, 1] (default 0.5)",
        "- ParamEyeLOpen — [0, 1] (default 1)",
        "- ParamEyeROpen — [0, 1] (default 1)",
        "- ParamAngleY — [-30, 30] (default 0)",
        "- ParamCheek — [0, 1] — Toggle blush",
    ]
)

WORDS = [
    WordBoundary(start_ms=0, end_ms=300, text="I'm"),
    WordBoundary(start_ms=300, end_ms=700, text="angry!"),
]
VISEMES = [VisemeEvent(start_ms=0, viseme_id=1), VisemeEvent(start_ms=350, viseme_id=4)]


@dataclass
class FakeLLM:
    reply: str = ""
    error: Optional[Exception] = None
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_content: str,
        max_output_tokens: int,
        json_schema: Optional[Dict[str, Any]] = None,
        schema_name: str = "",
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_content": user_content,
                "max_output_tokens": max_output_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


class TestTimelinePlanner(unittest.TestCase):
    def test_empty_catalog_falls_back_without_calling_llm(self) -> None:
        llm = FakeLLM(reply='{"mode":"keyframes","keyframes":[]}')
        report = TimelinePlanner(llm=llm).run(words=WORDS, visemes=VISEMES, catalog_text="", fps=60)
        self.assertEqual(report.source, "fallback")
        self.assertEqual(report.reason, "empty_catalog")
        self.assertEqual(llm.calls, [])
        assert isinstance(report.timeline, FixedFpsTimeline)
        # No declared params: every frame is empty.
        self.assertTrue(report.timeline.fixed_fps.frames)
        self.assertTrue(all(f == {} for f in report.timeline.fixed_fps.frames))

    def test_llm_unavailable(self) -> None:
        report = TimelinePlanner(llm=None).run(words=WORDS, visemes=VISEMES, catalog_text=CATALOG, fps=60)
        self.assertEqual(report.source, "fallback")
        self.assertEqual(report.reason, "llm_unavailable")
        self.assertEqual(report.definitions, 5)
        assert isinstance(report.timeline, FixedFpsTimeline)
        self.assertEqual(report.timeline.fixed_fps.dt_ms, 17)
        self.assertAlmostEqual(report.timeline.fixed_fps.frames[0]["ParamBreath"], 0.5)

    def test_accepts_valid_plan_and_clamps_it(self) -> None:
        reply = json.dumps(
            {
                "mode": "keyframes",
                "keyframes": [
                    {"timeMs": 0, "params": {"ParamAngleY": 45, "ParamMouthOpenY": 1}},
                    {"timeMs": 300, "params": {"ParamCheek": 0.7}},
                ],
            }
        )
        llm = FakeLLM(reply=reply)
        planner = TimelinePlanner(llm=llm, timeline_max_output_tokens=1234)
        report = planner.run(words=WORDS, visemes=VISEMES, catalog_text=CATALOG, fps=30, strategy="auto")

        self.assertEqual((report.source, report.reason), ("llm", "ok"))
        assert isinstance(report.timeline, KeyframesTimeline)
        self.assertEqual(report.timeline.keyframes[0].params, {"ParamAngleY": 30.0})
        self.assertEqual(report.timeline.keyframes[1].params, {"ParamCheek": 1.0})

        self.assertEqual(len(llm.calls), 1)
        call = llm.calls[0]
        self.assertEqual(call["max_output_tokens"], 1234)
        self.assertIn("- ParamCheek [0, 1] (toggle-like) — Toggle blush", call["system_prompt"])
        user = json.loads(call["user_content"])
        self.assertEqual(user["fps"], 30)
        self.assertEqual(user["strategy"], "auto")
        self.assertEqual(user["hints"], {"angry": True})
        self.assertEqual(user["words"][1]["text"], "angry!")
        self.assertEqual(user["visemes"][1]["visemeId"], 4)

    def test_plan_returns_timeline_only(self) -> None:
        llm = FakeLLM(reply='{"mode":"fixed_fps","fixedFps":{"dtMs":20,"frames":[{"ParamBreath":0.4}]}}')
        tl = TimelinePlanner(llm=llm).plan(words=WORDS, visemes=VISEMES, catalog_text=CATALOG)
        assert isinstance(tl, FixedFpsTimeline)
        self.assertEqual(tl.fixed_fps.dt_ms, 20)
        self.assertEqual(tl.fixed_fps.frames, [{"ParamBreath": 0.4}])

    def test_invalid_json_falls_back(self) -> None:
        report = TimelinePlanner(llm=FakeLLM(reply="I cannot do that")).run(
            words=WORDS, visemes=VISEMES, catalog_text=CATALOG
        )
        self.assertEqual((report.source, report.reason), ("fallback", "invalid_json"))

    def test_bad_shape_falls_back(self) -> None:
        report = TimelinePlanner(llm=FakeLLM(reply='{"mode":"curves"}')).run(
            words=WORDS, visemes=VISEMES, catalog_text=CATALOG
        )
        self.assertEqual((report.source, report.reason), ("fallback", "unknown_mode"))

    def test_empty_after_clamp_falls_back(self) -> None:
        report = TimelinePlanner(llm=FakeLLM(reply='{"mode":"keyframes","keyframes":["x", 1]}')).run(
            words=WORDS, visemes=VISEMES, catalog_text=CATALOG
        )
        self.assertEqual((report.source, report.reason), ("fallback", "empty_after_clamp"))
        assert isinstance(report.timeline, FixedFpsTimeline)

    def test_empty_keyframes_reply_falls_back(self) -> None:
        llm = FakeLLM(reply='{"mode":"keyframes","keyframes":[]}')
        report = TimelinePlanner(llm=llm).run(words=WORDS, visemes=VISEMES, catalog_text=CATALOG, fps=60)
        self.assertEqual((report.source, report.reason), ("fallback", "empty_after_clamp"))
        self.assertEqual(len(llm.calls), 1)
        assert isinstance(report.timeline, FixedFpsTimeline)
        self.assertEqual(report.timeline.fixed_fps.dt_ms, 17)
        # t = 0, 17, ..., 697 for 700 ms of speech
        self.assertEqual(len(report.timeline.fixed_fps.frames), 42)
        self.assertAlmostEqual(report.timeline.fixed_fps.frames[0]["ParamBreath"], 0.5)

    def test_llm_exception_falls_back(self) -> None:
        llm = FakeLLM(error=TimeoutError("slow"))
        report = TimelinePlanner(llm=llm).run(words=WORDS, visemes=VISEMES, catalog_text=CATALOG)
        self.assertEqual((report.source, report.reason), ("fallback", "llm_error|TimeoutError"))
        assert isinstance(report.timeline, FixedFpsTimeline)
        self.assertTrue(report.timeline.fixed_fps.frames)

    def test_catalog_is_truncated(self) -> None:
        llm = FakeLLM(reply='{"mode":"fixed_fps","fixedFps":{"dtMs":17,"frames":[{"ParamAngleY":5}]}}')
        report = TimelinePlanner(llm=llm, max_params=2).run(words=WORDS, visemes=VISEMES, catalog_text=CATALOG)
        self.assertTrue(report.truncated)
        prompt = llm.calls[0]["system_prompt"]
        self.assertIn("ParamEyeLOpen", prompt)
        self.assertNotIn("ParamAngleY", prompt)
        # ParamAngleY is past the cap and gets dropped from the frame.
        self.assertEqual((report.source, report.reason), ("llm", "ok"))
        assert isinstance(report.timeline, FixedFpsTimeline)
        self.assertEqual(report.timeline.fixed_fps.frames, [{}])

    def test_fixed_fps_with_empty_frames_is_accepted(self) -> None:
        # A non-empty frame list survives clamping even when every frame is {}.
        llm = FakeLLM(reply='{"mode":"fixed_fps","fixedFps":{"dtMs":17,"frames":[{"Unknown":1}]}}')
        report = TimelinePlanner(llm=llm).run(words=WORDS, visemes=VISEMES, catalog_text=CATALOG)
        self.assertEqual((report.source, report.reason), ("llm", "ok"))


if __name__ == "__main__":
    unittest.main()
