"""FastAPI application for the film generation API."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from cinegen import cleanup, jobs
from cinegen.config import Settings
from cinegen.events import EVENT_RUN_FINISHED, HEARTBEAT_FRAME, EventRelay, format_sse
from cinegen.film_store import (
    ChapterConflictError,
    FilmStore,
    NotFoundError,
    RunConflictError,
    build_film_store,
)
from cinegen.json_extract import AdapterParseError
from cinegen.media_merge import MergeEngine
from cinegen.pipeline import FilmPipeline
from cinegen.progress import build_progress
from cinegen.records import Chapter, Film, FilmConfig, build_scene_work_items, new_id
from cinegen.schemas import (
    CancelResult,
    ChapterCreate,
    ChapterOut,
    ChapterUpdate,
    DownloadUrl,
    FilmCreate,
    FilmOut,
    FrameworkOut,
    GeneratedVideoOut,
    GenerationProgress,
    GenerationStarted,
    StoryPreviewOut,
    StoryPreviewRequest,
    TextToVideoRequest,
)
from cinegen.stages import ChapterStatus, FilmStage, IllegalTransitionError
from cinegen.storage import MediaStore, MediaStoreConfigError, MediaStoreError, R2MediaStore, resolve_read_url
from cinegen.story_framework import generate_framework, generate_preview
from cinegen.text_generation import (
    AdapterCallError,
    TextGenerationConfigError,
    TextGenerator,
    build_text_generator,
)
from cinegen.video_generation import VideoGenerationError, VideoGenerator, build_video_generator
from cinegen.video_library import VideoLibrary

logger = logging.getLogger(__name__)

SETTINGS = Settings.from_env()
TEMP_MEDIA_DIR = Path(SETTINGS.temp_media_dir)
TEMP_MEDIA_DIR.mkdir(parents=True, exist_ok=True)
SSE_HEARTBEAT_SECONDS = 15.0
ORPHANED_RUN_ERROR = "interrupted: no live run after restart"

_media_store: MediaStore | None = None
_film_store: FilmStore | None = None
_event_relay: EventRelay | None = None
_text_generators: dict[str, TextGenerator] = {}
_video_generator: VideoGenerator | None = None


def get_media_store() -> MediaStore:
    """Build and cache the R2 media store instance."""
    global _media_store
    if _media_store is None:
        _media_store = R2MediaStore(
            account_id=SETTINGS.r2_account_id,
            bucket=SETTINGS.r2_bucket,
            access_key_id=SETTINGS.r2_access_key_id,
            secret_access_key=SETTINGS.r2_secret_access_key,
            default_url_ttl_seconds=SETTINGS.r2_url_ttl_seconds,
        )
    return _media_store


def get_optional_media_store() -> MediaStore | None:
    """Return the media store, or None when R2 is not configured."""
    try:
        return get_media_store()
    except MediaStoreConfigError as exc:
        logger.warning("storage.unavailable error=%s", exc)
        return None


def get_film_store() -> FilmStore:
    """Build and cache the film store, creating its schema on first use."""
    global _film_store
    if _film_store is None:
        store = build_film_store(dsn=SETTINGS.database_dsn)
        store.ensure_schema()
        _film_store = store
    return _film_store


def get_event_relay() -> EventRelay:
    global _event_relay
    if _event_relay is None:
        _event_relay = EventRelay(queue_size=SETTINGS.event_queue_size)
    return _event_relay


def get_text_generator() -> TextGenerator:
    """Story-level text generator (framework, preview, chapters)."""
    if "story" not in _text_generators:
        _text_generators["story"] = build_text_generator(SETTINGS, model_id=SETTINGS.story_model_id)
    return _text_generators["story"]


def get_scene_text_generator() -> TextGenerator:
    """Lighter text generator used to split chapters into scene prompts."""
    if "scene" not in _text_generators:
        _text_generators["scene"] = build_text_generator(SETTINGS, model_id=SETTINGS.scene_model_id)
    return _text_generators["scene"]


def get_video_generator() -> VideoGenerator:
    global _video_generator
    if _video_generator is None:
        _video_generator = build_video_generator(SETTINGS)
    return _video_generator


def get_optional_video_generator() -> VideoGenerator | None:
    """Return the video generator, or None when the provider is not configured."""
    try:
        return get_video_generator()
    except VideoGenerationError as exc:
        logger.warning("video_generation.unavailable error=%s", exc)
        return None


def build_pipeline() -> FilmPipeline:
    media_store = get_optional_media_store()
    return FilmPipeline(
        store=get_film_store(),
        text_generator=get_text_generator(),
        scene_text_generator=get_scene_text_generator(),
        video_generator=get_optional_video_generator(),
        media_store=media_store,
        merge_engine=MergeEngine(SETTINGS, media_store),
        events=get_event_relay(),
        settings=SETTINGS,
    )


def build_video_library() -> VideoLibrary:
    return VideoLibrary(
        store=get_film_store(),
        video_generator=get_optional_video_generator(),
        media_store=get_optional_media_store(),
        url_ttl_seconds=SETTINGS.r2_url_ttl_seconds,
    )


def _startup_validate_settings() -> None:
    """Log missing adapter and storage settings during startup validation."""
    missing = SETTINGS.missing_r2_fields()
    if missing:
        logger.warning(
            "Missing R2 configuration at startup: %s. "
            "Scene clips will keep provider URLs and multi-clip merges will fail until configured.",
            ", ".join(missing),
        )
    missing_llm = SETTINGS.missing_llm_fields()
    if missing_llm:
        logger.warning(
            "Missing text generation configuration at startup: %s. Story generation will fail.",
            ", ".join(missing_llm),
        )
    missing_video = SETTINGS.missing_video_fields()
    if missing_video:
        logger.warning(
            "Missing video generation configuration at startup: %s. Scene generation will fail.",
            ", ".join(missing_video),
        )


def _recover_orphaned_runs() -> None:
    """Fail films left in an in-flight stage by a previous process."""
    failed = get_film_store().mark_orphaned_runs_failed(list(jobs.runs), ORPHANED_RUN_ERROR)
    for film_id in failed:
        logger.warning("pipeline.recovered_orphan film_id=%s", film_id)


def _film_out(film: Film) -> FilmOut:
    final_url = None
    if film.final_video_handle:
        try:
            final_url = resolve_read_url(
                film.final_video_handle,
                get_optional_media_store(),
                expires_in=SETTINGS.r2_url_ttl_seconds,
            )
        except MediaStoreError as exc:
            logger.warning("film.final_url.unavailable film_id=%s error=%s", film.id, exc)
    return FilmOut.from_record(film, final_video_url=final_url)


def _require_film(film_id: str) -> Film:
    film = get_film_store().get_film(film_id)
    if film is None:
        raise NotFoundError(f"Film '{film_id}' not found")
    return film


def _require_idle_run(film_id: str) -> None:
    if jobs.is_running(film_id):
        raise RunConflictError(f"Film '{film_id}' has a generation run in progress")


def _mark_film_failed(film_id: str, error: str) -> None:
    try:
        get_film_store().set_film_stage(film_id, FilmStage.FAILED, error=error)
    except (NotFoundError, IllegalTransitionError) as exc:
        logger.warning("pipeline.fail.skipped film_id=%s reason=%s", film_id, exc)


async def run_film_generation(film_id: str, handle: jobs.RunHandle) -> None:
    """Background task: drive a claimed film through every stage."""
    try:
        pipeline = build_pipeline()
        await pipeline.run(film_id, cancel_token=handle.token)
    except Exception as e:
        logger.exception("Film generation failed for film %s", film_id)
        _mark_film_failed(film_id, str(e) or e.__class__.__name__)
    finally:
        jobs.finish_run(film_id, handle)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate settings, recover orphaned runs, start scheduler. Shutdown: stop scheduler."""
    _startup_validate_settings()
    _recover_orphaned_runs()
    cleanup.setup_scheduler(str(TEMP_MEDIA_DIR), SETTINGS.temp_media_max_age_hours)
    yield
    cleanup.shutdown_scheduler()


app = FastAPI(
    title="Cinegen Film Generation API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RunConflictError)
@app.exception_handler(IllegalTransitionError)
@app.exception_handler(ChapterConflictError)
async def _conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(TextGenerationConfigError)
@app.exception_handler(MediaStoreConfigError)
async def _config_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(AdapterCallError)
@app.exception_handler(AdapterParseError)
@app.exception_handler(MediaStoreError)
async def _upstream_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("upstream.failed path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# ---- films


@app.post("/api/films", response_model=FilmOut, status_code=201)
async def create_film(body: FilmCreate):
    config = FilmConfig(
        mode=body.mode,
        chapter_count=body.chapter_count,
        words_per_chapter=body.words_per_chapter,
        story_length=body.story_length,
        video_model=body.video_model,
        frame_size=body.frame_size,
        narrator_voice=body.narrator_voice,
    )
    film = get_film_store().create_film(Film.create(body.title.strip(), config))
    logger.info("film.created film_id=%s mode=%s", film.id, film.config.mode.value)
    return _film_out(film)


@app.get("/api/films", response_model=list[FilmOut])
async def list_films():
    return [_film_out(film) for film in get_film_store().list_films()]


@app.get("/api/films/{film_id}", response_model=FilmOut)
async def get_film(film_id: str):
    return _film_out(_require_film(film_id))


@app.post("/api/preview-story", response_model=StoryPreviewOut)
async def preview_story(body: StoryPreviewRequest):
    preview = await generate_preview(get_text_generator(), body.title.strip())
    return StoryPreviewOut(genres=preview.genres, premise=preview.premise, opening_hook=preview.opening_hook)


@app.get("/api/films/{film_id}/framework", response_model=FrameworkOut)
async def get_framework(film_id: str):
    _require_film(film_id)
    framework = get_film_store().get_framework(film_id)
    if framework is None:
        raise HTTPException(404, "Story framework not found")
    return FrameworkOut.from_record(framework)


@app.post("/api/films/{film_id}/framework", response_model=FrameworkOut)
async def create_framework(film_id: str):
    """Generate (or regenerate) the story framework for a film."""
    film = _require_film(film_id)
    _require_idle_run(film_id)
    framework = await generate_framework(get_text_generator(), film.id, film.title)
    return FrameworkOut.from_record(get_film_store().save_framework(framework))


@app.post("/api/films/{film_id}/generate-chapters", response_model=list[ChapterOut])
async def generate_chapters(film_id: str):
    """Write missing chapters synchronously without starting a full run."""
    _require_film(film_id)
    _require_idle_run(film_id)
    if get_film_store().get_framework(film_id) is None:
        raise HTTPException(404, "Story framework not found. Generate framework first.")
    pipeline = build_pipeline()
    chapters = await pipeline.write_chapters(film_id)
    return [ChapterOut.from_record(chapter) for chapter in chapters]


# ---- chapters


@app.get("/api/films/{film_id}/chapters", response_model=list[ChapterOut])
async def list_chapters(film_id: str):
    _require_film(film_id)
    return [ChapterOut.from_record(chapter) for chapter in get_film_store().list_chapters(film_id)]


@app.post("/api/films/{film_id}/chapters", response_model=ChapterOut, status_code=201)
async def create_chapter(film_id: str, body: ChapterCreate):
    _require_film(film_id)
    chapter = Chapter(
        id=new_id(),
        film_id=film_id,
        chapter_number=body.chapter_number,
        title=body.title,
        summary=body.summary,
        prompt=body.prompt,
        scene_prompts=list(body.scene_prompts),
    )
    return ChapterOut.from_record(get_film_store().create_chapter(chapter))


@app.get("/api/chapters/{chapter_id}", response_model=ChapterOut)
async def get_chapter(chapter_id: str):
    chapter = get_film_store().get_chapter(chapter_id)
    if chapter is None:
        raise NotFoundError(f"Chapter '{chapter_id}' not found")
    return ChapterOut.from_record(chapter)


@app.patch("/api/chapters/{chapter_id}", response_model=ChapterOut)
async def update_chapter(chapter_id: str, body: ChapterUpdate):
    store = get_film_store()
    chapter = store.get_chapter(chapter_id)
    if chapter is None:
        raise NotFoundError(f"Chapter '{chapter_id}' not found")
    _require_idle_run(chapter.film_id)
    if body.title is not None:
        chapter.title = body.title
    if body.summary is not None:
        chapter.summary = body.summary
    if body.prompt is not None:
        chapter.prompt = body.prompt
    if body.scene_prompts is not None:
        chapter.scene_prompts = list(body.scene_prompts)
        chapter.video_frames = build_scene_work_items(chapter.scene_prompts)
        # New frames invalidate any earlier chapter video.
        chapter.status = ChapterStatus.PENDING
        chapter.error = None
        chapter.video_handle = None
        chapter.duration_seconds = None
    return ChapterOut.from_record(store.save_chapter(chapter))


# ---- generation runs


@app.post("/api/films/{film_id}/start-generation", response_model=GenerationStarted, status_code=202)
async def start_generation(film_id: str, background_tasks: BackgroundTasks):
    """Claim the film and run the pipeline in the background."""
    _require_film(film_id)
    _require_idle_run(film_id)
    film = get_film_store().claim_run(film_id)
    handle = jobs.register_run(film_id)
    background_tasks.add_task(run_film_generation, film_id, handle)
    logger.info("pipeline.accepted film_id=%s", film_id)
    return GenerationStarted(
        film_id=film.id,
        generation_stage=film.generation_stage.value,
        message="Film generation started",
    )


@app.post("/api/films/{film_id}/cancel", response_model=CancelResult)
async def cancel_generation(film_id: str):
    _require_film(film_id)
    cancelled = jobs.request_cancel(film_id)
    logger.info("pipeline.cancel_requested film_id=%s live=%s", film_id, cancelled)
    return CancelResult(film_id=film_id, cancelled=cancelled)


@app.get("/api/films/{film_id}/generation-progress", response_model=GenerationProgress)
async def generation_progress(film_id: str):
    film = _require_film(film_id)
    chapters = get_film_store().list_chapters(film_id)
    return GenerationProgress(**build_progress(film, chapters, SETTINGS))


@app.get("/api/films/{film_id}/events")
async def film_events(film_id: str, request: Request):
    """Stream pipeline events for a film as server-sent events."""
    _require_film(film_id)
    relay = get_event_relay()

    async def event_stream():
        async with relay.subscribe(film_id) as subscription:
            while True:
                if await request.is_disconnected():
                    break
                event = await subscription.next_event(SSE_HEARTBEAT_SECONDS)
                if event is None:
                    yield HEARTBEAT_FRAME
                    continue
                yield format_sse(event)
                if event.type == EVENT_RUN_FINISHED:
                    break

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ---- video library


@app.post("/api/text-to-video", response_model=GeneratedVideoOut)
async def text_to_video(body: TextToVideoRequest):
    video = await build_video_library().create(
        body.prompt,
        duration=body.duration,
        resolution=body.resolution,
        model=body.model,
        aspect_ratio=body.aspect_ratio,
        image_url=body.image_url,
        seed=body.seed,
    )
    return GeneratedVideoOut.from_record(video)


@app.get("/api/videos", response_model=list[GeneratedVideoOut])
async def list_videos():
    return [GeneratedVideoOut.from_record(video) for video in get_film_store().list_generated_videos()]


@app.get("/api/videos/{video_id}", response_model=GeneratedVideoOut)
async def get_video(video_id: str):
    video = get_film_store().get_generated_video(video_id)
    if video is None:
        raise NotFoundError(f"Video '{video_id}' not found")
    return GeneratedVideoOut.from_record(video)


@app.get("/api/videos/{video_id}/check-status", response_model=GeneratedVideoOut)
async def check_video_status(video_id: str):
    video = await build_video_library().check_status(video_id)
    return GeneratedVideoOut.from_record(video)


@app.get("/api/videos/{video_id}/download-url", response_model=DownloadUrl)
async def video_download_url(video_id: str):
    library = build_video_library()
    video = library.get(video_id)
    return DownloadUrl(download_url=library.download_url(video_id), object_key=video.object_key)
