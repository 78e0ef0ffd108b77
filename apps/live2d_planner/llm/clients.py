from __future__ import annotations

import concurrent.futures
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from apps.live2d_planner.core.settings import Settings


class IJsonLLM(Protocol):
    """A completion service asked for one JSON object. Output is untrusted."""

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_content: str,
        max_output_tokens: int,
        json_schema: Optional[Dict[str, Any]] = None,
        schema_name: str = "",
    ) -> str:
        raise NotImplementedError


@dataclass
class OpenAIResponsesLLM:
    api_key: str
    model: str = "gpt-4.1-mini"
    timeout_sec: float = 30.0

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_content: str,
        max_output_tokens: int,
        json_schema: Optional[Dict[str, Any]] = None,
        schema_name: str = "",
    ) -> str:
        from openai import OpenAI

        # Exactly one attempt; the caller falls back on any failure.
        client = OpenAI(api_key=self.api_key, timeout=float(self.timeout_sec), max_retries=0)
        if json_schema is not None:
            fmt: Dict[str, Any] = {
                "type": "json_schema",
                "name": schema_name or "Output",
                "strict": True,
                "schema": json_schema,
            }
        else:
            # No schema: the model returns a JSON object, validated locally.
            fmt = {"type": "json_object"}

        resp = client.responses.create(
            model=self.model,
            input=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            text={"format": fmt},
            max_output_tokens=int(max_output_tokens),
        )
        return (getattr(resp, "output_text", None) or "").strip()


@dataclass
class GeminiJsonLLM:
    api_key: str
    model: str = "gemini-2.0-flash-lite"
    timeout_sec: float = 30.0

    @staticmethod
    def _resp_to_text(resp: Any) -> str:
        """Best-effort extraction of response text.

        Prefer concatenating all candidate text parts; ``resp.text`` can be
        incomplete on some SDK versions.
        """
        text0 = getattr(resp, "text", None) or ""
        text0 = text0.strip() if isinstance(text0, str) else ""

        def _is_seq(x: Any) -> bool:
            return isinstance(x, Sequence) and not isinstance(x, (str, bytes, bytearray))

        parts_text: list[str] = []
        candidates = getattr(resp, "candidates", None)
        if candidates and _is_seq(candidates):
            for cand in candidates:
                content = getattr(cand, "content", None)
                parts = getattr(content, "parts", None) if content is not None else None
                if parts and _is_seq(parts):
                    for p in parts:
                        pt = getattr(p, "text", None)
                        if isinstance(pt, str) and pt:
                            parts_text.append(pt)

        text1 = "".join(parts_text).strip()
        # Prefer the longer non-empty extraction.
        if text1 and (not text0 or len(text1) > len(text0)):
            return text1
        return text0

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_content: str,
        max_output_tokens: int,
        json_schema: Optional[Dict[str, Any]] = None,
        schema_name: str = "",
    ) -> str:
        from google import genai

        # JSON mode only; the schema (if any) is already spelled out in the prompt.
        _ = (json_schema, schema_name)
        client = genai.Client(api_key=self.api_key)
        config: Dict[str, Any] = {
            "system_instruction": system_prompt,
            "response_mime_type": "application/json",
            "max_output_tokens": int(max_output_tokens),
        }

        def _call() -> Any:
            return client.models.generate_content(
                model=self.model,
                contents=[{"role": "user", "parts": [{"text": user_content}]}],
                config=config,
            )

        # The SDK may block on retries/backoff; never hold the request past the timeout.
        ex = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        fut = ex.submit(_call)
        try:
            resp = fut.result(timeout=float(self.timeout_sec))
        finally:
            fut.cancel()
            ex.shutdown(wait=False, cancel_futures=True)
        return self._resp_to_text(resp)


def build_llm(settings: Settings) -> Optional[IJsonLLM]:
    """Pick the configured provider. None means no usable collaborator."""
    provider = (settings.llm_provider or "").strip().lower()
    if provider == "gemini":
        if not (settings.gemini_api_key or "").strip():
            return None
        return GeminiJsonLLM(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_sec=settings.llm_timeout_sec,
        )
    if provider == "openai":
        if not (settings.openai_api_key or "").strip():
            return None
        return OpenAIResponsesLLM(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_sec=settings.llm_timeout_sec,
        )
    return None
