"""Read-only progress projection over a film and its chapters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from cinegen.records import Chapter, Film
from cinegen.stages import ChapterStatus, FilmStage, SceneStatus

if TYPE_CHECKING:
    from cinegen.config import Settings

CHAPTER_WEIGHT = 20.0
SCENE_WEIGHT = 60.0
CHAPTER_MERGE_WEIGHT = 15.0
FINAL_MERGE_WEIGHT = 5.0


def format_duration(total_seconds: int) -> str:
    """Format seconds as MM:SS, or H:MM:SS from one hour up."""
    total_seconds = max(0, int(total_seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def _planned_scene_count(chapter: Chapter, scenes_per_chapter: int) -> int:
    if chapter.video_frames:
        return len(chapter.video_frames)
    if chapter.scene_prompts:
        return len(chapter.scene_prompts)
    return scenes_per_chapter


def _scene_buckets(chapters: Sequence[Chapter], planned_total: int) -> dict[str, int]:
    buckets = {status.value: 0 for status in SceneStatus}
    for chapter in chapters:
        for frame in chapter.video_frames:
            buckets[SceneStatus(frame.status).value] += 1
    known = sum(buckets.values())
    # Scenes not yet split out of their chapter count as pending.
    buckets[SceneStatus.PENDING.value] += max(0, planned_total - known)
    return {"total": max(planned_total, known), **buckets}


def _chapter_detail(chapter: Chapter, scenes_per_chapter: int) -> dict[str, Any]:
    completed = sum(1 for frame in chapter.video_frames if frame.status == SceneStatus.COMPLETED)
    failed = sum(1 for frame in chapter.video_frames if frame.status == SceneStatus.FAILED)
    return {
        "chapter_number": chapter.chapter_number,
        "title": chapter.title,
        "chapter_type": chapter.chapter_type,
        "status": ChapterStatus(chapter.status).value,
        "has_video": bool(chapter.video_handle),
        "video_handle": chapter.video_handle,
        "duration_seconds": chapter.duration_seconds,
        "scenes_total": _planned_scene_count(chapter, scenes_per_chapter),
        "scenes_completed": completed,
        "scenes_failed": failed,
    }


def build_progress(film: Film, chapters: Sequence[Chapter], settings: "Settings") -> dict[str, Any]:
    """Project a film and its chapters onto a progress snapshot."""
    scenes_per_chapter = settings.scenes_per_chapter
    scene_seconds = settings.scene_duration_seconds
    target_chapters = max(film.config.effective_chapter_count, len(chapters))
    ordered = sorted(chapters, key=lambda chapter: chapter.chapter_number)
    by_number = {chapter.chapter_number: chapter for chapter in ordered}

    written = sum(1 for chapter in ordered if chapter.has_narrative)
    planned_scenes = 0
    for number in range(1, target_chapters + 1):
        chapter = by_number.get(number)
        planned_scenes += _planned_scene_count(chapter, scenes_per_chapter) if chapter else scenes_per_chapter
    scenes = _scene_buckets(ordered, planned_scenes)
    merged = sum(1 for chapter in ordered if chapter.status == ChapterStatus.COMPLETED and chapter.video_handle)
    stage = FilmStage(film.generation_stage)

    if stage == FilmStage.COMPLETED:
        overall = 100.0
    else:
        overall = CHAPTER_WEIGHT * min(1.0, written / target_chapters)
        if scenes["total"]:
            overall += SCENE_WEIGHT * (scenes[SceneStatus.COMPLETED.value] / scenes["total"])
        overall += CHAPTER_MERGE_WEIGHT * min(1.0, merged / target_chapters)
        if film.final_video_handle:
            overall += FINAL_MERGE_WEIGHT
    overall = round(min(100.0, max(0.0, overall)), 1)

    chapter_buckets = {status.value: 0 for status in ChapterStatus}
    for chapter in ordered:
        chapter_buckets[ChapterStatus(chapter.status).value] += 1

    estimated_seconds = 0
    for number in range(1, target_chapters + 1):
        chapter = by_number.get(number)
        if chapter is not None and chapter.status == ChapterStatus.COMPLETED and chapter.duration_seconds:
            estimated_seconds += chapter.duration_seconds
        elif chapter is not None:
            estimated_seconds += _planned_scene_count(chapter, scenes_per_chapter) * scene_seconds
        else:
            estimated_seconds += scenes_per_chapter * scene_seconds

    return {
        "film_id": film.id,
        "title": film.title,
        "mode": film.config.mode.value,
        "generation_stage": stage.value,
        "overall_progress": overall,
        "chapters_written": written,
        "chapters_target": target_chapters,
        "scenes": scenes,
        "chapters": {"total": len(ordered), **chapter_buckets},
        "chapter_details": [_chapter_detail(chapter, scenes_per_chapter) for chapter in ordered],
        "estimated_duration": format_duration(estimated_seconds),
        "is_complete": stage == FilmStage.COMPLETED,
        "final_video_handle": film.final_video_handle,
        "error": film.error,
    }
