from .clients import GeminiJsonLLM, IJsonLLM, OpenAIResponsesLLM, build_llm
from .emotion import score_emotion

__all__ = ["GeminiJsonLLM", "IJsonLLM", "OpenAIResponsesLLM", "build_llm", "score_emotion"]
