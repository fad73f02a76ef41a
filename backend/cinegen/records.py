"""Persisted records for films, story frameworks, chapters and library videos."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from cinegen.stages import ChapterStatus, FilmMode, FilmStage, GeneratedVideoStatus, SceneStatus

STRUCTURED_CHAPTER_COUNT = 18


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True, slots=True)
class FilmConfig:
    """User-selected generation options for one film."""

    mode: FilmMode = FilmMode.FREEFORM
    chapter_count: int = 5
    words_per_chapter: int = 500
    story_length: str = "medium"
    video_model: str = "kling_21"
    frame_size: str = "1080p"
    # Stored for the UI only; the pipeline never reads it.
    narrator_voice: str = "male-narrator"

    @property
    def effective_chapter_count(self) -> int:
        if self.mode == FilmMode.STRUCTURED:
            return STRUCTURED_CHAPTER_COUNT
        return max(1, self.chapter_count)

    def to_payload(self) -> dict[str, Any]:
        return {
            "mode": FilmMode(self.mode).value,
            "chapter_count": self.chapter_count,
            "words_per_chapter": self.words_per_chapter,
            "story_length": self.story_length,
            "video_model": self.video_model,
            "frame_size": self.frame_size,
            "narrator_voice": self.narrator_voice,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "FilmConfig":
        payload = payload if isinstance(payload, dict) else {}
        defaults = cls()
        return cls(
            mode=FilmMode(payload.get("mode") or defaults.mode),
            chapter_count=int(payload.get("chapter_count") or defaults.chapter_count),
            words_per_chapter=int(payload.get("words_per_chapter") or defaults.words_per_chapter),
            story_length=str(payload.get("story_length") or defaults.story_length),
            video_model=str(payload.get("video_model") or defaults.video_model),
            frame_size=str(payload.get("frame_size") or defaults.frame_size),
            narrator_voice=str(payload.get("narrator_voice") or defaults.narrator_voice),
        )


@dataclass(slots=True)
class Film:
    """Top-level unit of work: one title through to one finished video."""

    id: str
    title: str
    config: FilmConfig
    generation_stage: FilmStage = FilmStage.IDLE
    final_video_handle: str | None = None
    total_duration_seconds: int | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(cls, title: str, config: FilmConfig | None = None) -> "Film":
        return cls(id=new_id(), title=title, config=config or FilmConfig())


@dataclass(frozen=True, slots=True)
class StorySetting:
    location: str = ""
    time: str = ""
    weather: str = ""
    atmosphere: str = ""

    def to_payload(self) -> dict[str, str]:
        return {
            "location": self.location,
            "time": self.time,
            "weather": self.weather,
            "atmosphere": self.atmosphere,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "StorySetting":
        if not isinstance(payload, dict):
            return cls()
        return cls(
            location=str(payload.get("location", "")),
            time=str(payload.get("time", "")),
            weather=str(payload.get("weather", "")),
            atmosphere=str(payload.get("atmosphere", "")),
        )


@dataclass(frozen=True, slots=True)
class CastMember:
    name: str
    age: int | None = None
    role: str = ""
    description: str = ""
    # Visual reference tag used to keep the character consistent in video prompts.
    actor: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "age": self.age,
            "role": self.role,
            "description": self.description,
            "actor": self.actor,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CastMember":
        raw_age = payload.get("age")
        try:
            age = int(raw_age) if raw_age is not None else None
        except (TypeError, ValueError):
            age = None
        return cls(
            name=str(payload.get("name", "")),
            age=age,
            role=str(payload.get("role", "")),
            description=str(payload.get("description", "")),
            actor=str(payload.get("actor", "")),
        )


@dataclass(frozen=True, slots=True)
class StoryFramework:
    """Premise, hook, tone, setting and cast for one film. Replaced, never patched."""

    id: str
    film_id: str
    premise: str
    hook: str
    genres: tuple[str, ...]
    tone: str
    setting: StorySetting
    characters: tuple[CastMember, ...]
    created_at: datetime = field(default_factory=_utcnow)

    def to_payload(self) -> dict[str, Any]:
        return {
            "premise": self.premise,
            "hook": self.hook,
            "genres": list(self.genres),
            "tone": self.tone,
            "setting": self.setting.to_payload(),
            "characters": [member.to_payload() for member in self.characters],
        }

    @classmethod
    def from_payload(cls, film_id: str, payload: dict[str, Any], framework_id: str | None = None) -> "StoryFramework":
        raw_genres = payload.get("genres")
        if raw_genres is None and payload.get("genre"):
            raw_genres = [payload.get("genre")]
        if isinstance(raw_genres, str):
            raw_genres = [part.strip() for part in raw_genres.split(",")]
        genres = tuple(str(item) for item in (raw_genres or []) if str(item).strip())
        raw_characters = payload.get("characters", [])
        characters = tuple(
            CastMember.from_payload(item)
            for item in (raw_characters if isinstance(raw_characters, list) else [])
            if isinstance(item, dict)
        )
        return cls(
            id=framework_id or new_id(),
            film_id=film_id,
            premise=str(payload.get("premise", "")),
            hook=str(payload.get("hook", "")),
            genres=genres,
            tone=str(payload.get("tone", "")),
            setting=StorySetting.from_payload(payload.get("setting")),
            characters=characters,
        )


@dataclass(frozen=True, slots=True)
class Artifact:
    """Recurring symbolic object threaded through structured-mode chapters."""

    name: str
    description: str = ""
    significance: str = ""

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "description": self.description, "significance": self.significance}

    @classmethod
    def from_payload(cls, payload: Any) -> "Artifact | None":
        if not isinstance(payload, dict) or not str(payload.get("name", "")).strip():
            return None
        return cls(
            name=str(payload["name"]).strip(),
            description=str(payload.get("description", "")),
            significance=str(payload.get("significance", "")),
        )


@dataclass(frozen=True, slots=True)
class SceneWorkItem:
    """One scene clip to generate, embedded in its chapter's `video_frames`."""

    frame_number: int
    prompt: str
    status: SceneStatus = SceneStatus.PENDING
    external_id: str | None = None
    video_url: str | None = None
    object_key: str | None = None
    error: str | None = None

    @property
    def handle(self) -> str | None:
        return self.object_key or self.video_url

    @property
    def is_usable_for_merge(self) -> bool:
        return self.status == SceneStatus.COMPLETED and bool(self.handle)

    def evolve(self, **changes: Any) -> "SceneWorkItem":
        return replace(self, **changes)

    def to_payload(self) -> dict[str, Any]:
        return {
            "frame_number": self.frame_number,
            "prompt": self.prompt,
            "status": SceneStatus(self.status).value,
            "external_id": self.external_id,
            "video_url": self.video_url,
            "object_key": self.object_key,
            "error": self.error,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SceneWorkItem":
        return cls(
            frame_number=int(payload.get("frame_number", 0)),
            prompt=str(payload.get("prompt", "")),
            status=SceneStatus(payload.get("status") or SceneStatus.PENDING),
            external_id=payload.get("external_id"),
            video_url=payload.get("video_url"),
            object_key=payload.get("object_key"),
            error=payload.get("error"),
        )


def build_scene_work_items(scene_prompts: list[str]) -> list[SceneWorkItem]:
    """Create pending work-items whose frame numbers match prompt positions."""
    return [
        SceneWorkItem(frame_number=index, prompt=prompt)
        for index, prompt in enumerate(scene_prompts, start=1)
    ]


@dataclass(slots=True)
class Chapter:
    """Narrative segment of a film, decomposed into scene work-items."""

    id: str
    film_id: str
    chapter_number: int
    title: str
    summary: str
    prompt: str | None = None
    chapter_type: str | None = None
    artifact: Artifact | None = None
    scene_prompts: list[str] = field(default_factory=list)
    video_frames: list[SceneWorkItem] = field(default_factory=list)
    status: ChapterStatus = ChapterStatus.PENDING
    video_handle: str | None = None
    duration_seconds: int | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def has_narrative(self) -> bool:
        return bool(self.summary.strip())

    def usable_frames(self) -> list[SceneWorkItem]:
        """Completed frames with a retrievable handle, in frame order."""
        return sorted(
            (frame for frame in self.video_frames if frame.is_usable_for_merge),
            key=lambda frame: frame.frame_number,
        )


@dataclass(slots=True)
class GeneratedVideo:
    """Ad-hoc text-to-video library record, independent of any film."""

    id: str
    prompt: str
    duration: int = 10
    resolution: str = "1080p"
    model: str = "kling_21"
    aspect_ratio: str = "16:9"
    status: GeneratedVideoStatus = GeneratedVideoStatus.PROCESSING
    external_id: str | None = None
    video_url: str | None = None
    object_key: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
