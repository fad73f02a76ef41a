"""Pydantic models for the film generation API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from cinegen.records import Chapter, Film, GeneratedVideo, StoryFramework
from cinegen.stages import FilmMode

FrameSize = Literal["720p", "1080p", "4K"]
StoryLength = Literal["short", "medium", "long", "custom"]


class FilmCreate(BaseModel):
    """Request body for creating a film."""

    title: str = Field(min_length=1, max_length=300)
    mode: FilmMode = FilmMode.FREEFORM
    chapter_count: int = Field(default=5, ge=1, le=50)
    words_per_chapter: int = Field(default=500, ge=50, le=5000)
    story_length: StoryLength = "medium"
    video_model: str = Field(default="kling_21", min_length=1)
    frame_size: FrameSize = "1080p"
    narrator_voice: str = "male-narrator"


class FilmConfigOut(BaseModel):
    mode: FilmMode
    chapter_count: int
    words_per_chapter: int
    story_length: str
    video_model: str
    frame_size: str
    narrator_voice: str


class FilmOut(BaseModel):
    """Film record as returned by the API."""

    id: str
    title: str
    config: FilmConfigOut
    generation_stage: str
    final_video_handle: str | None = None
    final_video_url: str | None = None
    total_duration_seconds: int | None = None
    error: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, film: Film, final_video_url: str | None = None) -> "FilmOut":
        return cls(
            id=film.id,
            title=film.title,
            config=FilmConfigOut(**film.config.to_payload()),
            generation_stage=film.generation_stage.value,
            final_video_handle=film.final_video_handle,
            final_video_url=final_video_url,
            total_duration_seconds=film.total_duration_seconds,
            error=film.error,
            created_at=film.created_at,
        )


class StoryPreviewRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)


class StoryPreviewOut(BaseModel):
    genres: list[str] = Field(default_factory=list)
    premise: str
    opening_hook: str


class SettingOut(BaseModel):
    location: str = ""
    time: str = ""
    weather: str = ""
    atmosphere: str = ""


class CastMemberOut(BaseModel):
    name: str
    age: int | None = None
    role: str = ""
    description: str = ""
    actor: str = ""


class FrameworkOut(BaseModel):
    """Story framework for a film."""

    id: str
    film_id: str
    premise: str
    hook: str
    genres: list[str] = Field(default_factory=list)
    tone: str
    setting: SettingOut
    characters: list[CastMemberOut] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_record(cls, framework: StoryFramework) -> "FrameworkOut":
        payload = framework.to_payload()
        return cls(id=framework.id, film_id=framework.film_id, created_at=framework.created_at, **payload)


class ArtifactModel(BaseModel):
    name: str
    description: str = ""
    significance: str = ""


class SceneWorkItemOut(BaseModel):
    frame_number: int
    prompt: str
    status: str
    external_id: str | None = None
    video_url: str | None = None
    object_key: str | None = None
    error: str | None = None


class ChapterCreate(BaseModel):
    """Request body for adding a chapter by hand."""

    chapter_number: int = Field(ge=1)
    title: str = Field(min_length=1)
    summary: str = ""
    prompt: str | None = None
    scene_prompts: list[str] = Field(default_factory=list)


class ChapterUpdate(BaseModel):
    """Editable chapter fields. Unset fields are left unchanged."""

    title: str | None = Field(default=None, min_length=1)
    summary: str | None = None
    prompt: str | None = None
    scene_prompts: list[str] | None = None


class ChapterOut(BaseModel):
    id: str
    film_id: str
    chapter_number: int
    chapter_type: str | None = None
    title: str
    summary: str
    prompt: str | None = None
    artifact: ArtifactModel | None = None
    scene_prompts: list[str] = Field(default_factory=list)
    video_frames: list[SceneWorkItemOut] = Field(default_factory=list)
    status: str
    video_handle: str | None = None
    duration_seconds: int | None = None
    error: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, chapter: Chapter) -> "ChapterOut":
        return cls(
            id=chapter.id,
            film_id=chapter.film_id,
            chapter_number=chapter.chapter_number,
            chapter_type=chapter.chapter_type,
            title=chapter.title,
            summary=chapter.summary,
            prompt=chapter.prompt,
            artifact=ArtifactModel(**chapter.artifact.to_payload()) if chapter.artifact else None,
            scene_prompts=list(chapter.scene_prompts),
            video_frames=[SceneWorkItemOut(**frame.to_payload()) for frame in chapter.video_frames],
            status=chapter.status.value,
            video_handle=chapter.video_handle,
            duration_seconds=chapter.duration_seconds,
            error=chapter.error,
            created_at=chapter.created_at,
        )


class GenerationStarted(BaseModel):
    film_id: str
    generation_stage: str
    message: str


class CancelResult(BaseModel):
    film_id: str
    cancelled: bool


class GenerationProgress(BaseModel):
    """Progress snapshot for the generation dashboard."""

    film_id: str
    title: str
    mode: str
    generation_stage: str
    overall_progress: float
    chapters_written: int
    chapters_target: int
    scenes: dict[str, int]
    chapters: dict[str, int]
    chapter_details: list[dict[str, Any]] = Field(default_factory=list)
    estimated_duration: str
    is_complete: bool
    final_video_handle: str | None = None
    error: str | None = None


class TextToVideoRequest(BaseModel):
    prompt: str = Field(min_length=1)
    duration: int = Field(default=10, ge=1, le=60)
    resolution: FrameSize = "1080p"
    model: str = Field(default="kling_21", min_length=1)
    aspect_ratio: str = "16:9"
    image_url: str | None = None
    seed: int | None = None


class GeneratedVideoOut(BaseModel):
    id: str
    prompt: str
    duration: int
    resolution: str
    model: str
    aspect_ratio: str
    status: str
    external_id: str | None = None
    video_url: str | None = None
    object_key: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, video: GeneratedVideo) -> "GeneratedVideoOut":
        return cls(
            id=video.id,
            prompt=video.prompt,
            duration=video.duration,
            resolution=video.resolution,
            model=video.model,
            aspect_ratio=video.aspect_ratio,
            status=video.status.value,
            external_id=video.external_id,
            video_url=video.video_url,
            object_key=video.object_key,
            created_at=video.created_at,
        )


class DownloadUrl(BaseModel):
    download_url: str
    object_key: str | None = None
