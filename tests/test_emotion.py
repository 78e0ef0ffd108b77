from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from apps.live2d_planner.llm.emotion import apply_angry_override, score_emotion
from apps.live2d_planner.llm.prompts import EMOTION_KEYS
from apps.live2d_planner.timeline.hints import detect_intensity_hints, is_angry_text, join_word_text


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
        self.calls.append({"user_content": user_content, "json_schema": json_schema, "schema_name": schema_name})
        if self.error is not None:
            raise self.error
        return self.reply


class TestHints(unittest.TestCase):
    def test_angry_phrases(self) -> None:
        self.assertTrue(is_angry_text("Don't piss me off!"))
        self.assertTrue(is_angry_text("dont  PISS me off"))
        self.assertTrue(is_angry_text("I'm angry now"))
        self.assertTrue(is_angry_text("Im angry"))
        self.assertTrue(is_angry_text("You're one of those delinquents"))
        self.assertFalse(is_angry_text("I'm hungry"))
        self.assertFalse(is_angry_text(""))

    def test_hints_from_words(self) -> None:
        text = join_word_text(["I'm", "angry"])
        self.assertEqual(text, "I'm angry")
        self.assertEqual(detect_intensity_hints(text), {"angry": True})
        self.assertEqual(detect_intensity_hints("hello there"), {"angry": False})


class TestEmotion(unittest.TestCase):
    def test_scores_are_clamped(self) -> None:
        llm = FakeLLM(reply='{"happiness": 1.7, "confused": -0.3, "annoyed": "x", "angry": 0.2, "sad": 0.4}')
        out = score_emotion(text="what a day", llm=llm)
        self.assertEqual(out.happiness, 1.0)
        self.assertEqual(out.confused, 0.0)
        self.assertEqual(out.annoyed, 0.0)
        self.assertEqual(out.angry, 0.2)
        self.assertEqual(out.sad, 0.4)
        self.assertEqual(llm.calls[0]["schema_name"], "EmotionScores")
        self.assertEqual(set(llm.calls[0]["json_schema"]["required"]), set(EMOTION_KEYS))

    def test_no_llm_gives_zeros(self) -> None:
        out = score_emotion(text="hello", llm=None)
        self.assertEqual(out.model_dump(), {k: 0.0 for k in EMOTION_KEYS})

    def test_failure_gives_zeros(self) -> None:
        out = score_emotion(text="hello", llm=FakeLLM(error=RuntimeError("boom")))
        self.assertEqual(out.model_dump(), {k: 0.0 for k in EMOTION_KEYS})
        out = score_emotion(text="hello", llm=FakeLLM(reply="not json"))
        self.assertEqual(out.model_dump(), {k: 0.0 for k in EMOTION_KEYS})

    def test_angry_override(self) -> None:
        llm = FakeLLM(reply='{"happiness": 0.8, "confused": 0.5, "annoyed": 0.1, "angry": 0.3, "sad": 0.6}')
        out = score_emotion(text="Don't piss me off", llm=llm)
        self.assertEqual(out.angry, 0.9)
        self.assertEqual(out.annoyed, 0.6)
        self.assertEqual(out.happiness, 0.1)
        self.assertEqual(out.sad, 0.2)
        self.assertEqual(out.confused, 0.2)

    def test_angry_override_without_llm(self) -> None:
        out = score_emotion(text="I'm angry", llm=None)
        self.assertEqual(out.angry, 0.9)
        self.assertEqual(out.annoyed, 0.6)
        self.assertEqual(out.happiness, 0.0)

    def test_override_keeps_higher_scores(self) -> None:
        out = apply_angry_override({"angry": 0.95, "annoyed": 0.7, "happiness": 0.05})
        self.assertEqual(out["angry"], 0.95)
        self.assertEqual(out["annoyed"], 0.7)
        self.assertEqual(out["happiness"], 0.05)


if __name__ == "__main__":
    unittest.main()
