"""Split a chapter narrative into video scene prompts."""

from __future__ import annotations

import logging

from cinegen.json_extract import AdapterParseError, extract_json_array
from cinegen.text_generation import TextGenerator

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional video director who creates detailed scene prompts for AI video "
    "generation. Always respond with valid JSON only, no additional text."
)


def build_split_prompt(chapter_body: str, chapter_title: str, count: int) -> str:
    examples = ",\n".join(
        f'  "Detailed visual description for scene {index} (50-80 words)..."'
        for index in range(1, count + 1)
    )
    return (
        f"Based on the following chapter, create {count} detailed video scene prompts.\n\n"
        f"Chapter Title: {chapter_title}\n"
        f"Chapter Summary: {chapter_body}\n\n"
        f"Generate a JSON array of exactly {count} scene prompts (no markdown, just pure JSON):\n"
        f"[\n{examples}\n]\n\n"
        "Each prompt should capture a key moment from the chapter in story order and include "
        "camera angles, lighting, action, mood, visible characters and environment details."
    )


class SceneSplitter:
    """Turn a chapter body into exactly `count` ordered scene prompts."""

    def __init__(self, text_generator: TextGenerator) -> None:
        self._text_generator = text_generator

    async def split(self, chapter_body: str, chapter_title: str, count: int) -> list[str]:
        if count < 1:
            raise ValueError("Scene count must be at least 1")
        raw = await self._text_generator.generate(
            SYSTEM_PROMPT,
            build_split_prompt(chapter_body, chapter_title, count),
        )
        items = extract_json_array(raw)
        prompts = [item.strip() for item in items if isinstance(item, str) and item.strip()]
        if len(prompts) < count:
            raise AdapterParseError(f"Expected {count} scene prompts, got {len(prompts)}")
        if len(prompts) > count:
            logger.info(
                "scene_splitter.truncated title=%s expected=%s received=%s",
                chapter_title,
                count,
                len(prompts),
            )
        return prompts[:count]
