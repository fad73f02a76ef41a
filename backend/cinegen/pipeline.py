"""Film generation pipeline: chapters, scene prompts, scene videos and merges."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from cinegen.chapter_structure import HOOK_CHAPTER_NUMBER, structured_beat
from cinegen.chapter_writer import ChapterWriter, FilmContext
from cinegen.events import (
    EVENT_CHAPTER_FINISHED,
    EVENT_CHAPTER_WRITTEN,
    EVENT_RUN_FINISHED,
    EVENT_SCENE_FINISHED,
    EVENT_SCENE_STARTED,
    EVENT_STAGE_CHANGED,
    EventRelay,
)
from cinegen.film_store import FilmStore, NotFoundError, RunConflictError
from cinegen.jobs import CancelToken, PipelineCancelledError
from cinegen.json_extract import AdapterParseError
from cinegen.media_merge import MergeEngine, MergeError
from cinegen.records import (
    Artifact,
    Chapter,
    Film,
    SceneWorkItem,
    StoryFramework,
    build_scene_work_items,
    new_id,
)
from cinegen.scene_splitter import SceneSplitter
from cinegen.stages import (
    ChapterStatus,
    FilmMode,
    FilmStage,
    SceneStatus,
    ensure_chapter_transition,
    ensure_film_transition,
    ensure_scene_transition,
)
from cinegen.storage import (
    MediaStore,
    MediaStoreError,
    build_chapter_key,
    build_final_key,
    build_scene_key,
    mirror_remote_video,
)
from cinegen.story_framework import generate_framework
from cinegen.text_generation import AdapterCallError, TextGenerator
from cinegen.video_generation import (
    PollTimeoutError,
    RetryPolicy,
    VideoGenerationError,
    VideoGenerator,
    VideoRequest,
    await_completion,
)

if TYPE_CHECKING:
    from cinegen.config import Settings

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "cancelled"


class FilmPipeline:
    """Drive one film from `generating_chapters` to `completed` or `failed`.

    Every stage skips units that are already done, so a failed or crashed run
    can be claimed again and resumes where it stopped.
    """

    def __init__(
        self,
        *,
        store: FilmStore,
        text_generator: TextGenerator,
        video_generator: VideoGenerator | None,
        media_store: MediaStore | None,
        merge_engine: MergeEngine,
        events: EventRelay,
        settings: "Settings",
        scene_text_generator: TextGenerator | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._text_generator = text_generator
        self._video_generator = video_generator
        self._media_store = media_store
        self._merge_engine = merge_engine
        self._events = events
        self._settings = settings
        self._http_client = http_client
        self._writer = ChapterWriter(text_generator)
        self._splitter = SceneSplitter(scene_text_generator or text_generator)
        self._retry_policy = RetryPolicy.from_settings(settings)

    def claim(self, film_id: str) -> Film:
        """Atomically move a restartable film into `generating_chapters`."""
        film = self._store.claim_run(film_id)
        logger.info("pipeline.claimed film_id=%s", film_id)
        return film

    async def run(self, film_id: str, cancel_token: CancelToken | None = None) -> Film:
        """Run all stages for a claimed film and return the final film record."""
        film = self._store.get_film(film_id)
        if film is None:
            raise NotFoundError(f"Film '{film_id}' not found")
        if film.generation_stage != FilmStage.GENERATING_CHAPTERS:
            raise RunConflictError(f"Film '{film_id}' has not been claimed for generation")

        token = cancel_token or CancelToken()
        logger.info("pipeline.run.start film_id=%s mode=%s", film_id, film.config.mode.value)
        self._events.emit(film_id, EVENT_STAGE_CHANGED, stage=FilmStage.GENERATING_CHAPTERS.value)
        try:
            await self.write_chapters(film_id, cancel_token=token)

            self._advance(film_id, FilmStage.GENERATING_PROMPTS)
            await self._generate_prompts(film_id, token)

            self._advance(film_id, FilmStage.GENERATING_VIDEOS)
            await self._generate_videos(film_id, token)

            self._advance(film_id, FilmStage.MERGING_CHAPTERS)
            await self._merge_chapters(film_id, token)

            self._advance(film_id, FilmStage.MERGING_FINAL)
            await self._merge_final(film_id, token)
        except PipelineCancelledError:
            logger.info("pipeline.run.cancelled film_id=%s", film_id)
            self._fail(film_id, CANCELLED_ERROR)
        except Exception as exc:
            logger.exception("pipeline.run.failed film_id=%s", film_id)
            self._fail(film_id, str(exc) or exc.__class__.__name__)

        final = self._store.get_film(film_id) or film
        self._events.emit(
            film_id,
            EVENT_RUN_FINISHED,
            stage=final.generation_stage.value,
            final_video_handle=final.final_video_handle,
            error=final.error,
        )
        logger.info("pipeline.run.finished film_id=%s stage=%s", film_id, final.generation_stage.value)
        return final

    def _advance(self, film_id: str, stage: FilmStage) -> Film:
        film = self._store.set_film_stage(film_id, stage)
        logger.info("pipeline.stage film_id=%s stage=%s", film_id, stage.value)
        self._events.emit(film_id, EVENT_STAGE_CHANGED, stage=stage.value)
        return film

    def _fail(self, film_id: str, error: str) -> None:
        try:
            self._store.set_film_stage(film_id, FilmStage.FAILED, error=error)
        except Exception:
            logger.exception("pipeline.fail.persist_failed film_id=%s", film_id)
            return
        self._events.emit(film_id, EVENT_STAGE_CHANGED, stage=FilmStage.FAILED.value, error=error)

    # ---- chapters

    async def ensure_framework(self, film: Film) -> StoryFramework:
        framework = self._store.get_framework(film.id)
        if framework is not None:
            return framework
        framework = await generate_framework(self._text_generator, film.id, film.title)
        return self._store.save_framework(framework)

    async def write_chapters(self, film_id: str, cancel_token: CancelToken | None = None) -> list[Chapter]:
        """Write every missing or empty chapter 1..N in order.

        A chapter whose generation fails is stored as `failed` with empty text
        and the next index is attempted.
        """
        token = cancel_token or CancelToken()
        film = self._store.get_film(film_id)
        if film is None:
            raise NotFoundError(f"Film '{film_id}' not found")
        token.raise_if_cancelled()
        framework = await self.ensure_framework(film)

        structured = film.config.mode == FilmMode.STRUCTURED
        chapter_count = film.config.effective_chapter_count
        context = FilmContext(
            title=film.title,
            framework=framework,
            chapter_count=chapter_count,
            words_per_chapter=film.config.words_per_chapter,
        )
        existing = {chapter.chapter_number: chapter for chapter in self._store.list_chapters(film_id)}
        hook_text: str | None = None
        artifact: Artifact | None = None

        for index in range(1, chapter_count + 1):
            chapter = existing.get(index)
            if chapter is not None and chapter.has_narrative:
                if index == HOOK_CHAPTER_NUMBER:
                    hook_text = chapter.summary
                artifact = chapter.artifact or artifact
                continue

            token.raise_if_cancelled()
            prior = [existing[number] for number in sorted(existing) if number < index]
            try:
                draft = await self._writer.generate(
                    index,
                    film.config.mode,
                    context,
                    prior,
                    hook_text=hook_text if structured else None,
                    artifact=artifact if structured else None,
                )
            except (AdapterCallError, AdapterParseError) as exc:
                logger.warning("pipeline.chapter.failed film_id=%s chapter=%s error=%s", film_id, index, exc)
                saved = self._store_failed_chapter(film_id, index, chapter, structured, str(exc))
                existing[index] = saved
                self._events.emit(
                    film_id,
                    EVENT_CHAPTER_WRITTEN,
                    chapter_number=index,
                    status=ChapterStatus.FAILED.value,
                    error=str(exc),
                )
                continue

            if chapter is None:
                chapter = Chapter(
                    id=new_id(),
                    film_id=film_id,
                    chapter_number=index,
                    title=draft.title,
                    summary=draft.body,
                )
                apply_draft = self._store.create_chapter
            else:
                chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.PENDING)
                apply_draft = self._store.save_chapter
            chapter.title = draft.title
            chapter.summary = draft.body
            chapter.prompt = draft.video_prompt or None
            chapter.chapter_type = draft.chapter_type
            chapter.artifact = draft.artifact
            chapter.error = None
            saved = apply_draft(chapter)
            existing[index] = saved

            if index == HOOK_CHAPTER_NUMBER:
                hook_text = saved.summary
            artifact = saved.artifact or artifact
            logger.info("pipeline.chapter.written film_id=%s chapter=%s", film_id, index)
            self._events.emit(
                film_id,
                EVENT_CHAPTER_WRITTEN,
                chapter_number=index,
                title=saved.title,
                status=saved.status.value,
            )

        return self._store.list_chapters(film_id)

    def _store_failed_chapter(
        self,
        film_id: str,
        index: int,
        chapter: Chapter | None,
        structured: bool,
        error: str,
    ) -> Chapter:
        if chapter is None:
            title = structured_beat(index).title if structured else f"Chapter {index}"
            return self._store.create_chapter(
                Chapter(
                    id=new_id(),
                    film_id=film_id,
                    chapter_number=index,
                    title=title,
                    summary="",
                    chapter_type=structured_beat(index).chapter_type if structured else None,
                    status=ChapterStatus.FAILED,
                    error=error,
                )
            )
        chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.FAILED)
        chapter.error = error
        return self._store.save_chapter(chapter)

    # ---- scene prompts

    async def _generate_prompts(self, film_id: str, token: CancelToken) -> None:
        count = self._settings.scenes_per_chapter
        for chapter in self._store.list_chapters(film_id):
            if not chapter.has_narrative:
                continue
            if chapter.scene_prompts:
                if chapter.status == ChapterStatus.PENDING:
                    # Prompts supplied by hand or edited since the last run.
                    if not chapter.video_frames:
                        chapter.video_frames = build_scene_work_items(chapter.scene_prompts)
                    chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.GENERATING_PROMPTS)
                    chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.GENERATING_VIDEOS)
                    self._store.save_chapter(chapter)
                continue

            token.raise_if_cancelled()
            chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.GENERATING_PROMPTS)
            chapter = self._store.save_chapter(chapter)
            try:
                prompts = await self._splitter.split(chapter.summary, chapter.title, count)
            except (AdapterCallError, AdapterParseError) as exc:
                logger.warning(
                    "pipeline.split.failed film_id=%s chapter=%s error=%s",
                    film_id,
                    chapter.chapter_number,
                    exc,
                )
                chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.FAILED)
                chapter.error = str(exc)
                self._store.save_chapter(chapter)
                continue

            chapter.scene_prompts = prompts
            chapter.video_frames = build_scene_work_items(prompts)
            chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.GENERATING_VIDEOS)
            chapter.error = None
            self._store.save_chapter(chapter)
            logger.info(
                "pipeline.split.completed film_id=%s chapter=%s scenes=%s",
                film_id,
                chapter.chapter_number,
                len(prompts),
            )

    # ---- scene videos

    async def _generate_videos(self, film_id: str, token: CancelToken) -> None:
        if self._video_generator is None:
            raise VideoGenerationError("Video generation is not configured")
        film = self._store.get_film(film_id)
        if film is None:
            raise NotFoundError(f"Film '{film_id}' not found")
        for chapter in self._store.list_chapters(film_id):
            if chapter.status not in (ChapterStatus.GENERATING_VIDEOS, ChapterStatus.FAILED):
                continue
            if not chapter.video_frames:
                continue

            chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.GENERATING_VIDEOS)
            chapter.video_frames.sort(key=lambda frame: frame.frame_number)
            chapter = self._store.save_chapter(chapter)

            for position, frame in enumerate(list(chapter.video_frames)):
                if frame.status == SceneStatus.COMPLETED:
                    continue
                token.raise_if_cancelled()
                self._events.emit(
                    film_id,
                    EVENT_SCENE_STARTED,
                    chapter_number=chapter.chapter_number,
                    frame_number=frame.frame_number,
                )
                outcome = await self._generate_scene(film, chapter, position, token)
                chapter.video_frames[position] = outcome
                chapter = self._store.save_chapter(chapter)
                self._events.emit(
                    film_id,
                    EVENT_SCENE_FINISHED,
                    chapter_number=chapter.chapter_number,
                    frame_number=outcome.frame_number,
                    status=outcome.status.value,
                    error=outcome.error,
                )

            failed = [frame for frame in chapter.video_frames if frame.status != SceneStatus.COMPLETED]
            if failed:
                chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.FAILED)
                chapter.error = f"{len(failed)} of {len(chapter.video_frames)} scenes failed"
            else:
                chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.MERGING)
                chapter.error = None
            self._store.save_chapter(chapter)

    async def _generate_scene(
        self,
        film: Film,
        chapter: Chapter,
        position: int,
        token: CancelToken,
    ) -> SceneWorkItem:
        frame = chapter.video_frames[position]
        try:
            if frame.status == SceneStatus.PROCESSING and frame.external_id:
                logger.info(
                    "pipeline.scene.resume film_id=%s chapter=%s frame=%s job_id=%s",
                    film.id,
                    chapter.chapter_number,
                    frame.frame_number,
                    frame.external_id,
                )
                video_url = await await_completion(
                    self._video_generator,
                    frame.external_id,
                    self._retry_policy,
                    cancel_token=token,
                )
            else:
                request = VideoRequest(
                    prompt=frame.prompt,
                    model=film.config.video_model,
                    duration_seconds=self._settings.scene_duration_seconds,
                    resolution=film.config.frame_size,
                    aspect_ratio=self._settings.video_aspect_ratio,
                )
                submitted = await self._video_generator.submit(request)
                video_url = submitted.video_url
                if not video_url:
                    frame = frame.evolve(
                        status=ensure_scene_transition(frame.status, SceneStatus.PROCESSING),
                        external_id=submitted.job_id,
                        error=None,
                    )
                    chapter.video_frames[position] = frame
                    self._store.save_chapter(chapter)
                    video_url = await await_completion(
                        self._video_generator,
                        submitted.job_id,
                        self._retry_policy,
                        cancel_token=token,
                    )
                elif submitted.job_id:
                    frame = frame.evolve(external_id=submitted.job_id)
        except (AdapterCallError, PollTimeoutError) as exc:
            logger.warning(
                "pipeline.scene.failed film_id=%s chapter=%s frame=%s error=%s",
                film.id,
                chapter.chapter_number,
                frame.frame_number,
                exc,
            )
            return frame.evolve(status=ensure_scene_transition(frame.status, SceneStatus.FAILED), error=str(exc))

        object_key = await self._mirror_scene(film.id, chapter.chapter_number, frame.frame_number, video_url)
        return frame.evolve(
            status=ensure_scene_transition(frame.status, SceneStatus.COMPLETED),
            video_url=video_url,
            object_key=object_key,
            error=None,
        )

    async def _mirror_scene(self, film_id: str, chapter_number: int, frame_number: int, video_url: str) -> str | None:
        if self._media_store is None:
            return None
        object_key = build_scene_key(film_id, chapter_number, frame_number)
        try:
            return await mirror_remote_video(self._media_store, video_url, object_key, http_client=self._http_client)
        except MediaStoreError as exc:
            # The provider URL remains the handle.
            logger.warning("pipeline.scene.mirror_failed film_id=%s key=%s error=%s", film_id, object_key, exc)
            return None

    # ---- merges

    async def _merge_chapters(self, film_id: str, token: CancelToken) -> None:
        scene_seconds = self._settings.scene_duration_seconds
        for chapter in self._store.list_chapters(film_id):
            if chapter.status != ChapterStatus.MERGING:
                continue
            token.raise_if_cancelled()
            frames = chapter.usable_frames()
            try:
                handle = await self._merge_engine.merge(
                    [frame.handle for frame in frames],
                    build_chapter_key(film_id, chapter.chapter_number),
                    cancel_token=token,
                )
            except (MergeError, MediaStoreError) as exc:
                logger.warning(
                    "pipeline.chapter_merge.failed film_id=%s chapter=%s error=%s",
                    film_id,
                    chapter.chapter_number,
                    exc,
                )
                chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.FAILED)
                chapter.error = str(exc)
                self._store.save_chapter(chapter)
                self._events.emit(
                    film_id,
                    EVENT_CHAPTER_FINISHED,
                    chapter_number=chapter.chapter_number,
                    status=ChapterStatus.FAILED.value,
                    error=str(exc),
                )
                continue

            chapter.video_handle = handle
            chapter.duration_seconds = len(frames) * scene_seconds
            chapter.status = ensure_chapter_transition(chapter.status, ChapterStatus.COMPLETED)
            chapter.error = None
            self._store.save_chapter(chapter)
            logger.info("pipeline.chapter_merge.completed film_id=%s chapter=%s", film_id, chapter.chapter_number)
            self._events.emit(
                film_id,
                EVENT_CHAPTER_FINISHED,
                chapter_number=chapter.chapter_number,
                status=ChapterStatus.COMPLETED.value,
                video_handle=handle,
                duration_seconds=chapter.duration_seconds,
            )

    async def _merge_final(self, film_id: str, token: CancelToken) -> None:
        chapters = [
            chapter
            for chapter in self._store.list_chapters(film_id)
            if chapter.status == ChapterStatus.COMPLETED and chapter.video_handle
        ]
        chapters.sort(key=lambda chapter: chapter.chapter_number)

        film = self._store.get_film(film_id)
        if film is None:
            raise NotFoundError(f"Film '{film_id}' not found")
        if not chapters:
            logger.warning("pipeline.final.no_chapters film_id=%s", film_id)
        else:
            token.raise_if_cancelled()
            film.final_video_handle = await self._merge_engine.merge(
                [chapter.video_handle for chapter in chapters],
                build_final_key(film_id),
                cancel_token=token,
            )
            film.total_duration_seconds = sum(chapter.duration_seconds or 0 for chapter in chapters)
        film.generation_stage = ensure_film_transition(film.generation_stage, FilmStage.COMPLETED)
        film.error = None
        self._store.save_film(film)
        logger.info(
            "pipeline.final.completed film_id=%s chapters=%s handle=%s",
            film_id,
            len(chapters),
            film.final_video_handle,
        )
        self._events.emit(
            film_id,
            EVENT_STAGE_CHANGED,
            stage=FilmStage.COMPLETED.value,
            final_video_handle=film.final_video_handle,
        )
