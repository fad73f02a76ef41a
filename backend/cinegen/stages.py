"""Closed status sets and transition tables for films, chapters and scenes."""

from __future__ import annotations

from enum import Enum


class IllegalTransitionError(RuntimeError):
    """Raised when a status change is not allowed by the transition table."""


class FilmStage(str, Enum):
    IDLE = "idle"
    GENERATING_CHAPTERS = "generating_chapters"
    GENERATING_PROMPTS = "generating_prompts"
    GENERATING_VIDEOS = "generating_videos"
    MERGING_CHAPTERS = "merging_chapters"
    MERGING_FINAL = "merging_final"
    COMPLETED = "completed"
    FAILED = "failed"


class ChapterStatus(str, Enum):
    PENDING = "pending"
    GENERATING_PROMPTS = "generating_prompts"
    GENERATING_VIDEOS = "generating_videos"
    MERGING = "merging"
    COMPLETED = "completed"
    FAILED = "failed"


class SceneStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FilmMode(str, Enum):
    FREEFORM = "freeform"
    STRUCTURED = "structured_18"


class GeneratedVideoStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


PIPELINE_STAGE_ORDER: tuple[FilmStage, ...] = (
    FilmStage.GENERATING_CHAPTERS,
    FilmStage.GENERATING_PROMPTS,
    FilmStage.GENERATING_VIDEOS,
    FilmStage.MERGING_CHAPTERS,
    FilmStage.MERGING_FINAL,
    FilmStage.COMPLETED,
)

# Stages a new run may be claimed from.
RESTARTABLE_STAGES: frozenset[FilmStage] = frozenset(
    {FilmStage.IDLE, FilmStage.FAILED, FilmStage.GENERATING_CHAPTERS}
)

IN_FLIGHT_STAGES: frozenset[FilmStage] = frozenset(
    {
        FilmStage.GENERATING_CHAPTERS,
        FilmStage.GENERATING_PROMPTS,
        FilmStage.GENERATING_VIDEOS,
        FilmStage.MERGING_CHAPTERS,
        FilmStage.MERGING_FINAL,
    }
)

_FILM_TRANSITIONS: dict[FilmStage, frozenset[FilmStage]] = {
    FilmStage.IDLE: frozenset({FilmStage.GENERATING_CHAPTERS, FilmStage.FAILED}),
    FilmStage.GENERATING_CHAPTERS: frozenset(
        {FilmStage.GENERATING_CHAPTERS, FilmStage.GENERATING_PROMPTS, FilmStage.FAILED}
    ),
    FilmStage.GENERATING_PROMPTS: frozenset({FilmStage.GENERATING_VIDEOS, FilmStage.FAILED}),
    FilmStage.GENERATING_VIDEOS: frozenset({FilmStage.MERGING_CHAPTERS, FilmStage.FAILED}),
    FilmStage.MERGING_CHAPTERS: frozenset({FilmStage.MERGING_FINAL, FilmStage.FAILED}),
    FilmStage.MERGING_FINAL: frozenset({FilmStage.COMPLETED, FilmStage.FAILED}),
    FilmStage.COMPLETED: frozenset(),
    FilmStage.FAILED: frozenset({FilmStage.GENERATING_CHAPTERS}),
}

_CHAPTER_TRANSITIONS: dict[ChapterStatus, frozenset[ChapterStatus]] = {
    ChapterStatus.PENDING: frozenset({ChapterStatus.GENERATING_PROMPTS, ChapterStatus.FAILED}),
    ChapterStatus.GENERATING_PROMPTS: frozenset(
        {ChapterStatus.GENERATING_VIDEOS, ChapterStatus.FAILED}
    ),
    ChapterStatus.GENERATING_VIDEOS: frozenset({ChapterStatus.MERGING, ChapterStatus.FAILED}),
    ChapterStatus.MERGING: frozenset({ChapterStatus.COMPLETED, ChapterStatus.FAILED}),
    ChapterStatus.COMPLETED: frozenset(),
    # Failed units are reattempted on a re-run.
    ChapterStatus.FAILED: frozenset(
        {
            ChapterStatus.PENDING,
            ChapterStatus.GENERATING_PROMPTS,
            ChapterStatus.GENERATING_VIDEOS,
            ChapterStatus.MERGING,
            ChapterStatus.FAILED,
        }
    ),
}

_SCENE_TRANSITIONS: dict[SceneStatus, frozenset[SceneStatus]] = {
    SceneStatus.PENDING: frozenset(
        {SceneStatus.PROCESSING, SceneStatus.COMPLETED, SceneStatus.FAILED}
    ),
    SceneStatus.PROCESSING: frozenset(
        {SceneStatus.PROCESSING, SceneStatus.COMPLETED, SceneStatus.FAILED}
    ),
    SceneStatus.COMPLETED: frozenset(),
    SceneStatus.FAILED: frozenset(
        {SceneStatus.PROCESSING, SceneStatus.COMPLETED, SceneStatus.FAILED}
    ),
}


def can_transition_film(current: FilmStage, target: FilmStage) -> bool:
    return target in _FILM_TRANSITIONS[FilmStage(current)]


def ensure_film_transition(current: FilmStage, target: FilmStage) -> FilmStage:
    """Validate a film stage change and return the target stage."""
    current = FilmStage(current)
    target = FilmStage(target)
    if target not in _FILM_TRANSITIONS[current]:
        raise IllegalTransitionError(f"Film stage cannot move from {current.value} to {target.value}")
    return target


def ensure_chapter_transition(current: ChapterStatus, target: ChapterStatus) -> ChapterStatus:
    """Validate a chapter status change and return the target status."""
    current = ChapterStatus(current)
    target = ChapterStatus(target)
    if current == target and current != ChapterStatus.COMPLETED:
        return target
    if target not in _CHAPTER_TRANSITIONS[current]:
        raise IllegalTransitionError(
            f"Chapter status cannot move from {current.value} to {target.value}"
        )
    return target


def ensure_scene_transition(current: SceneStatus, target: SceneStatus) -> SceneStatus:
    """Validate a scene work-item status change and return the target status."""
    current = SceneStatus(current)
    target = SceneStatus(target)
    if target not in _SCENE_TRANSITIONS[current]:
        raise IllegalTransitionError(f"Scene status cannot move from {current.value} to {target.value}")
    return target


def stage_index(stage: FilmStage) -> int:
    """Return the position of a stage in the pipeline order, -1 for idle/failed."""
    stage = FilmStage(stage)
    if stage in PIPELINE_STAGE_ORDER:
        return PIPELINE_STAGE_ORDER.index(stage)
    return -1
