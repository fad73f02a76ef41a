"""Language model adapter used for story, chapter and scene prompt generation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from cinegen.config import Settings

logger = logging.getLogger(__name__)


class AdapterCallError(RuntimeError):
    """Raised when a generative adapter call fails (network, auth, provider error)."""


class TextGenerationConfigError(AdapterCallError):
    """Raised when the text generation adapter is not configured."""


class TextGenerator(Protocol):
    """Free-form text generation from a system/user prompt pair."""

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw model output."""


def _to_text(response: Any) -> str:
    if hasattr(response, "content"):
        content = response.content
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            blocks: list[str] = []
            for block in content:
                if isinstance(block, str):
                    blocks.append(block)
                elif isinstance(block, dict) and "text" in block:
                    blocks.append(str(block["text"]))
            return "\n".join(blocks)
    return str(response)


class GeminiTextGenerator:
    """Gemini-backed text generator built on LangChain chat models."""

    def __init__(self, google_api_key: str, model_id: str, temperature: float = 0.8) -> None:
        from langchain_google_genai import ChatGoogleGenerativeAI

        self.model_id = model_id
        self._model = ChatGoogleGenerativeAI(
            model=model_id,
            google_api_key=google_api_key,
            temperature=temperature,
        )

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        from langchain_core.messages import HumanMessage, SystemMessage

        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        try:
            response = await self._model.ainvoke(messages)
        except Exception as exc:
            logger.warning("text_generation.call.failed model=%s error=%s", self.model_id, exc)
            raise AdapterCallError(f"Text generation call failed: {exc}") from exc
        text = _to_text(response).strip()
        if not text:
            logger.warning("text_generation.call.empty model=%s", self.model_id)
            raise AdapterCallError("Text generation returned empty content")
        return text


def build_text_generator(settings: "Settings", *, model_id: str | None = None) -> TextGenerator:
    """Build the configured Gemini text generator or fail with a config error."""
    missing = settings.missing_llm_fields()
    if missing:
        raise TextGenerationConfigError(
            f"Missing required text generation configuration: {', '.join(missing)}"
        )
    return GeminiTextGenerator(
        google_api_key=settings.google_api_key,
        model_id=model_id or settings.story_model_id,
        temperature=settings.llm_temperature,
    )
