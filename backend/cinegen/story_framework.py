"""Story framework and quick story preview generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cinegen.json_extract import AdapterParseError, extract_json_object
from cinegen.records import StoryFramework
from cinegen.text_generation import TextGenerator

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional film writer who creates compelling cinematic stories. "
    "Always respond with valid JSON only, no additional text or markdown."
)


@dataclass(frozen=True, slots=True)
class StoryPreview:
    genres: list[str]
    premise: str
    opening_hook: str


def build_framework_prompt(title: str) -> str:
    return f"""Create a complete story framework for a film titled "{title}".

Generate a JSON response with the following structure (no markdown, just pure JSON):
{{
  "premise": "A 2-3 sentence premise of the film",
  "hook": "A compelling opening hook (1-2 sentences)",
  "genres": ["Primary genre", "Secondary genre"],
  "tone": "The overall tone (e.g., Dark, Uplifting, Mysterious)",
  "setting": {{
    "location": "Primary location",
    "time": "Time period",
    "weather": "Weather/climate",
    "atmosphere": "Overall atmosphere"
  }},
  "characters": [
    {{
      "name": "Character name",
      "age": 30,
      "role": "protagonist/antagonist/supporting",
      "description": "Brief character description",
      "actor": "Consistent visual reference for this character"
    }}
  ]
}}

Make it cinematic, compelling, and suitable for video generation. Include 3-5 main characters."""


def build_preview_prompt(title: str) -> str:
    return f"""Based on the film title "{title}", generate a quick preview.

Generate a JSON response with this exact structure (no markdown, just pure JSON):
{{
  "genres": ["Primary Genre", "Secondary Genre"],
  "premise": "A compelling 2-3 sentence premise of the film",
  "openingHook": "An attention-grabbing opening hook that draws viewers in (1-2 sentences)"
}}

Make it cinematic, emotionally engaging, and suitable for video adaptation."""


async def generate_framework(text_generator: TextGenerator, film_id: str, title: str) -> StoryFramework:
    """Generate a story framework for a film title."""
    raw = await text_generator.generate(SYSTEM_PROMPT, build_framework_prompt(title))
    payload = extract_json_object(raw)
    if not str(payload.get("premise") or "").strip():
        raise AdapterParseError("Story framework response is missing 'premise'")
    framework = StoryFramework.from_payload(film_id, payload)
    logger.info(
        "story_framework.generated film_id=%s characters=%s",
        film_id,
        len(framework.characters),
    )
    return framework


async def generate_preview(text_generator: TextGenerator, title: str) -> StoryPreview:
    """Generate genres, premise and an opening hook for a title."""
    raw = await text_generator.generate(SYSTEM_PROMPT, build_preview_prompt(title))
    payload = extract_json_object(raw)
    raw_genres = payload.get("genres") or []
    if isinstance(raw_genres, str):
        raw_genres = [raw_genres]
    hook = payload.get("openingHook") or payload.get("opening_hook") or ""
    return StoryPreview(
        genres=[str(item) for item in raw_genres if str(item).strip()],
        premise=str(payload.get("premise") or ""),
        opening_hook=str(hook),
    )
