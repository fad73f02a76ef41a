"""Chapter narrative generation for freeform and structured films."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Sequence

from cinegen.chapter_structure import CLIMAX_CHAPTER_NUMBER, freeform_guidance, freeform_phase, structured_beat
from cinegen.json_extract import AdapterParseError, extract_json_object
from cinegen.records import Artifact, Chapter, StoryFramework
from cinegen.stages import FilmMode
from cinegen.text_generation import TextGenerator

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional film writer who creates compelling cinematic stories. "
    "Always respond with valid JSON only, no additional text or markdown."
)
EXCERPT_WORDS = 60


@dataclass(frozen=True, slots=True)
class FilmContext:
    """Film-level inputs every chapter prompt carries."""

    title: str
    framework: StoryFramework | None
    chapter_count: int
    words_per_chapter: int = 500


@dataclass(frozen=True, slots=True)
class ChapterDraft:
    title: str
    body: str
    video_prompt: str
    artifact: Artifact | None = None
    chapter_type: str | None = None


def excerpt(text: str, max_words: int = EXCERPT_WORDS) -> str:
    words = text.split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + " ..."


def _framework_block(context: FilmContext) -> str:
    lines = [f"Film Title: {context.title}"]
    framework = context.framework
    if framework is None:
        return "\n".join(lines)
    lines.append(f"Premise: {framework.premise}")
    if framework.genres:
        lines.append(f"Genre: {', '.join(framework.genres)}")
    if framework.tone:
        lines.append(f"Tone: {framework.tone}")
    setting = framework.setting
    if any((setting.location, setting.time, setting.weather, setting.atmosphere)):
        lines.append(
            f"Setting: {setting.location}, {setting.time}; weather {setting.weather}; "
            f"atmosphere {setting.atmosphere}"
        )
    if framework.characters:
        cast = "; ".join(
            f"{member.name} ({member.role}) visual reference: {member.actor or 'unspecified'}"
            for member in framework.characters
        )
        lines.append(f"Characters: {cast}")
    return "\n".join(lines)


def _prior_block(prior_chapters: Sequence[Chapter]) -> str:
    written = [chapter for chapter in prior_chapters if chapter.has_narrative]
    if not written:
        return "Previous chapters: none, this is where the story begins."
    lines = ["Previous chapters:"]
    for chapter in sorted(written, key=lambda item: item.chapter_number):
        lines.append(f"- Chapter {chapter.chapter_number} \"{chapter.title}\": {excerpt(chapter.summary)}")
    return "\n".join(lines)


def _response_shape(target_words: int, with_artifact: bool) -> str:
    shape = {
        "title": "Chapter title",
        "summary": f"The full chapter narrative, approximately {target_words} words, with dialogue, "
        "emotion, action and scene description.",
        "prompt": "Visual description for video generation (50-100 words): camera angles, lighting, "
        "action, mood, visible characters, environment.",
    }
    if with_artifact:
        shape["artifact"] = {
            "name": "Recurring symbolic object",
            "description": "How it looks in this chapter",
            "significance": "What it means at this point in the story",
        }
    return json.dumps(shape, indent=2)


def build_structured_prompt(
    chapter_number: int,
    context: FilmContext,
    prior_chapters: Sequence[Chapter],
    hook_text: str | None = None,
    artifact: Artifact | None = None,
) -> str:
    beat = structured_beat(chapter_number)
    sections = [
        _framework_block(context),
        _prior_block(prior_chapters),
        f"Write chapter {beat.number} of 18: \"{beat.title}\" ({beat.chapter_type}, phase: {beat.phase}).",
        beat.instructions,
    ]
    if chapter_number == CLIMAX_CHAPTER_NUMBER and hook_text:
        sections.append(
            "The opening hook of this film was, verbatim:\n"
            f"\"\"\"{hook_text}\"\"\"\n"
            "The climax must contain that exact moment."
        )
    if artifact is not None:
        sections.append(
            f"The recurring artifact so far is \"{artifact.name}\": {artifact.description} "
            f"(significance: {artifact.significance}). Keep it present and evolve its meaning."
        )
    sections.append(
        f"Target length: approximately {beat.target_words} words.\n"
        "Return a JSON object with this structure (no markdown, just pure JSON):\n"
        f"{_response_shape(beat.target_words, with_artifact=True)}"
    )
    return "\n\n".join(sections)


def build_freeform_prompt(
    chapter_number: int,
    context: FilmContext,
    prior_chapters: Sequence[Chapter],
) -> str:
    sections = [
        _framework_block(context),
        _prior_block(prior_chapters),
        f"Write chapter {chapter_number} of {context.chapter_count}.",
        freeform_guidance(chapter_number, context.chapter_count),
        f"Target length: approximately {context.words_per_chapter} words.\n"
        "Return a JSON object with this structure (no markdown, just pure JSON):\n"
        f"{_response_shape(context.words_per_chapter, with_artifact=False)}",
    ]
    return "\n\n".join(sections)


def _required_text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise AdapterParseError(f"Chapter response is missing '{key}'")
    return value.strip()


class ChapterWriter:
    """Generate one chapter's narrative with a single text adapter call."""

    def __init__(self, text_generator: TextGenerator) -> None:
        self._text_generator = text_generator

    async def generate(
        self,
        chapter_index: int,
        mode: FilmMode,
        film_context: FilmContext,
        prior_chapters: Sequence[Chapter],
        hook_text: str | None = None,
        artifact: Artifact | None = None,
    ) -> ChapterDraft:
        structured = FilmMode(mode) == FilmMode.STRUCTURED
        if structured:
            user_prompt = build_structured_prompt(
                chapter_index,
                film_context,
                prior_chapters,
                hook_text=hook_text,
                artifact=artifact,
            )
            chapter_type = structured_beat(chapter_index).chapter_type
        else:
            user_prompt = build_freeform_prompt(chapter_index, film_context, prior_chapters)
            chapter_type = None

        logger.info(
            "chapter_writer.generate chapter=%s mode=%s phase=%s",
            chapter_index,
            FilmMode(mode).value,
            chapter_type or freeform_phase(chapter_index, film_context.chapter_count),
        )
        raw = await self._text_generator.generate(SYSTEM_PROMPT, user_prompt)
        payload = extract_json_object(raw)

        title = _required_text(payload, "title")
        body = _required_text(payload, "summary")
        video_prompt = str(payload.get("prompt") or "").strip()
        next_artifact = artifact
        if structured:
            # Chapter 1 invents the artifact; later chapters may evolve it or carry it unchanged.
            next_artifact = Artifact.from_payload(payload.get("artifact")) or artifact
        return ChapterDraft(
            title=title,
            body=body,
            video_prompt=video_prompt,
            artifact=next_artifact,
            chapter_type=chapter_type,
        )
