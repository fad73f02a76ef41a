"""Postgres-backed film persistence with in-memory test implementation."""

from __future__ import annotations

import copy
import json
import threading
from dataclasses import replace
from typing import Any, Iterable, Protocol

from cinegen.records import (
    Artifact,
    Chapter,
    Film,
    FilmConfig,
    GeneratedVideo,
    SceneWorkItem,
    StoryFramework,
)
from cinegen.stages import (
    IN_FLIGHT_STAGES,
    RESTARTABLE_STAGES,
    ChapterStatus,
    FilmStage,
    GeneratedVideoStatus,
    ensure_film_transition,
)


class NotFoundError(LookupError):
    """Raised when a film, chapter or library video does not exist."""


class RunConflictError(RuntimeError):
    """Raised when a generation run cannot be claimed for a film."""


class ChapterConflictError(RuntimeError):
    """Raised when a chapter number already exists for a film."""


_RESTARTABLE_VALUES = tuple(sorted(stage.value for stage in RESTARTABLE_STAGES))
_IN_FLIGHT_VALUES = tuple(sorted(stage.value for stage in IN_FLIGHT_STAGES))

CREATE_FILMS_SQL = """
CREATE TABLE IF NOT EXISTS films (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    config JSONB NOT NULL,
    generation_stage TEXT NOT NULL DEFAULT 'idle',
    final_video_handle TEXT NULL,
    total_duration_seconds INTEGER NULL,
    error TEXT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

CREATE_FRAMEWORKS_SQL = """
CREATE TABLE IF NOT EXISTS story_frameworks (
    id TEXT PRIMARY KEY,
    film_id TEXT NOT NULL UNIQUE REFERENCES films (id) ON DELETE CASCADE,
    payload JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

CREATE_CHAPTERS_SQL = """
CREATE TABLE IF NOT EXISTS chapters (
    id TEXT PRIMARY KEY,
    film_id TEXT NOT NULL REFERENCES films (id) ON DELETE CASCADE,
    chapter_number INTEGER NOT NULL,
    chapter_type TEXT NULL,
    title TEXT NOT NULL,
    summary TEXT NOT NULL DEFAULT '',
    prompt TEXT NULL,
    artifact JSONB NULL,
    scene_prompts JSONB NOT NULL DEFAULT '[]'::jsonb,
    video_frames JSONB NOT NULL DEFAULT '[]'::jsonb,
    status TEXT NOT NULL DEFAULT 'pending',
    video_handle TEXT NULL,
    duration_seconds INTEGER NULL,
    error TEXT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (film_id, chapter_number)
)
"""

CREATE_GENERATED_VIDEOS_SQL = """
CREATE TABLE IF NOT EXISTS generated_videos (
    id TEXT PRIMARY KEY,
    prompt TEXT NOT NULL,
    duration INTEGER NOT NULL,
    resolution TEXT NOT NULL,
    model TEXT NOT NULL,
    aspect_ratio TEXT NOT NULL,
    status TEXT NOT NULL,
    external_id TEXT NULL,
    video_url TEXT NULL,
    object_key TEXT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

INSERT_FILM_SQL = """
INSERT INTO films (id, title, config, generation_stage, final_video_handle, total_duration_seconds, error, created_at)
VALUES (
    %(id)s,
    %(title)s,
    %(config)s::jsonb,
    %(generation_stage)s,
    %(final_video_handle)s,
    %(total_duration_seconds)s,
    %(error)s,
    %(created_at)s
)
RETURNING *
"""

UPDATE_FILM_SQL = """
UPDATE films
SET title = %(title)s,
    config = %(config)s::jsonb,
    generation_stage = %(generation_stage)s,
    final_video_handle = %(final_video_handle)s,
    total_duration_seconds = %(total_duration_seconds)s,
    error = %(error)s
WHERE id = %(id)s
RETURNING *
"""

GET_FILM_SQL = "SELECT * FROM films WHERE id = %(id)s LIMIT 1"

LIST_FILMS_SQL = "SELECT * FROM films ORDER BY created_at DESC"

CLAIM_RUN_SQL = """
UPDATE films
SET generation_stage = 'generating_chapters',
    error = NULL
WHERE id = %(id)s
  AND generation_stage = ANY(%(allowed)s)
RETURNING *
"""

SELECT_IN_FLIGHT_SQL = """
SELECT id
FROM films
WHERE generation_stage = ANY(%(stages)s)
"""

MARK_FAILED_SQL = """
UPDATE films
SET generation_stage = 'failed',
    error = %(error)s
WHERE id = %(id)s
  AND generation_stage = ANY(%(stages)s)
RETURNING id
"""

UPSERT_FRAMEWORK_SQL = """
INSERT INTO story_frameworks (id, film_id, payload, created_at)
VALUES (%(id)s, %(film_id)s, %(payload)s::jsonb, %(created_at)s)
ON CONFLICT (film_id)
DO UPDATE SET id = EXCLUDED.id, payload = EXCLUDED.payload, created_at = EXCLUDED.created_at
RETURNING *
"""

GET_FRAMEWORK_SQL = "SELECT * FROM story_frameworks WHERE film_id = %(film_id)s LIMIT 1"

INSERT_CHAPTER_SQL = """
INSERT INTO chapters (
    id,
    film_id,
    chapter_number,
    chapter_type,
    title,
    summary,
    prompt,
    artifact,
    scene_prompts,
    video_frames,
    status,
    video_handle,
    duration_seconds,
    error,
    created_at
)
VALUES (
    %(id)s,
    %(film_id)s,
    %(chapter_number)s,
    %(chapter_type)s,
    %(title)s,
    %(summary)s,
    %(prompt)s,
    %(artifact)s::jsonb,
    %(scene_prompts)s::jsonb,
    %(video_frames)s::jsonb,
    %(status)s,
    %(video_handle)s,
    %(duration_seconds)s,
    %(error)s,
    %(created_at)s
)
ON CONFLICT (film_id, chapter_number) DO NOTHING
RETURNING *
"""

UPDATE_CHAPTER_SQL = """
UPDATE chapters
SET chapter_type = %(chapter_type)s,
    title = %(title)s,
    summary = %(summary)s,
    prompt = %(prompt)s,
    artifact = %(artifact)s::jsonb,
    scene_prompts = %(scene_prompts)s::jsonb,
    video_frames = %(video_frames)s::jsonb,
    status = %(status)s,
    video_handle = %(video_handle)s,
    duration_seconds = %(duration_seconds)s,
    error = %(error)s
WHERE id = %(id)s
RETURNING *
"""

GET_CHAPTER_SQL = "SELECT * FROM chapters WHERE id = %(id)s LIMIT 1"

LIST_CHAPTERS_SQL = """
SELECT *
FROM chapters
WHERE film_id = %(film_id)s
ORDER BY chapter_number ASC
"""

UPSERT_GENERATED_VIDEO_SQL = """
INSERT INTO generated_videos (
    id, prompt, duration, resolution, model, aspect_ratio, status, external_id, video_url, object_key, created_at
)
VALUES (
    %(id)s,
    %(prompt)s,
    %(duration)s,
    %(resolution)s,
    %(model)s,
    %(aspect_ratio)s,
    %(status)s,
    %(external_id)s,
    %(video_url)s,
    %(object_key)s,
    %(created_at)s
)
ON CONFLICT (id)
DO UPDATE SET status = EXCLUDED.status,
    external_id = EXCLUDED.external_id,
    video_url = EXCLUDED.video_url,
    object_key = EXCLUDED.object_key
RETURNING *
"""

GET_GENERATED_VIDEO_SQL = "SELECT * FROM generated_videos WHERE id = %(id)s LIMIT 1"

LIST_GENERATED_VIDEOS_SQL = "SELECT * FROM generated_videos ORDER BY created_at DESC"


class FilmStore(Protocol):
    """Persistence operations used by the pipeline and the HTTP API."""

    def ensure_schema(self) -> None:
        """Create schema objects if missing."""

    def create_film(self, film: Film) -> Film:
        """Insert a new film."""

    def get_film(self, film_id: str) -> Film | None:
        """Fetch one film by id."""

    def list_films(self) -> list[Film]:
        """List films, newest first."""

    def save_film(self, film: Film) -> Film:
        """Persist all mutable film fields."""

    def set_film_stage(self, film_id: str, stage: FilmStage, *, error: str | None = None) -> Film:
        """Move a film to `stage`, validating the transition."""

    def claim_run(self, film_id: str) -> Film:
        """Atomically move a restartable film to `generating_chapters`."""

    def mark_orphaned_runs_failed(self, live_film_ids: Iterable[str], error: str) -> list[str]:
        """Fail films stuck in an in-flight stage that have no live run."""

    def get_framework(self, film_id: str) -> StoryFramework | None:
        """Fetch the story framework for a film."""

    def save_framework(self, framework: StoryFramework) -> StoryFramework:
        """Store or replace the framework for its film."""

    def create_chapter(self, chapter: Chapter) -> Chapter:
        """Insert a chapter; chapter numbers are unique per film."""

    def get_chapter(self, chapter_id: str) -> Chapter | None:
        """Fetch one chapter by id."""

    def list_chapters(self, film_id: str) -> list[Chapter]:
        """List a film's chapters ordered by chapter number."""

    def save_chapter(self, chapter: Chapter) -> Chapter:
        """Persist all mutable chapter fields."""

    def save_generated_video(self, video: GeneratedVideo) -> GeneratedVideo:
        """Insert or update a library video."""

    def get_generated_video(self, video_id: str) -> GeneratedVideo | None:
        """Fetch one library video by id."""

    def list_generated_videos(self) -> list[GeneratedVideo]:
        """List library videos, newest first."""


class InMemoryFilmStore:
    """In-memory store used in tests and when no database is configured."""

    def __init__(self) -> None:
        self._films: dict[str, Film] = {}
        self._frameworks: dict[str, StoryFramework] = {}
        self._chapters: dict[str, Chapter] = {}
        self._videos: dict[str, GeneratedVideo] = {}
        self._lock = threading.Lock()

    def ensure_schema(self) -> None:
        return

    def create_film(self, film: Film) -> Film:
        with self._lock:
            self._films[film.id] = copy.deepcopy(film)
            return copy.deepcopy(film)

    def get_film(self, film_id: str) -> Film | None:
        with self._lock:
            film = self._films.get(film_id)
            return copy.deepcopy(film) if film is not None else None

    def list_films(self) -> list[Film]:
        with self._lock:
            films = sorted(self._films.values(), key=lambda film: film.created_at, reverse=True)
            return [copy.deepcopy(film) for film in films]

    def save_film(self, film: Film) -> Film:
        with self._lock:
            if film.id not in self._films:
                raise NotFoundError(f"Film '{film.id}' not found")
            self._films[film.id] = copy.deepcopy(film)
            return copy.deepcopy(film)

    def set_film_stage(self, film_id: str, stage: FilmStage, *, error: str | None = None) -> Film:
        with self._lock:
            film = self._films.get(film_id)
            if film is None:
                raise NotFoundError(f"Film '{film_id}' not found")
            film.generation_stage = ensure_film_transition(film.generation_stage, stage)
            if error is not None:
                film.error = error
            return copy.deepcopy(film)

    def claim_run(self, film_id: str) -> Film:
        with self._lock:
            film = self._films.get(film_id)
            if film is None:
                raise NotFoundError(f"Film '{film_id}' not found")
            if film.generation_stage not in RESTARTABLE_STAGES:
                raise RunConflictError(
                    f"Film '{film_id}' cannot start generation from stage {film.generation_stage.value}"
                )
            film.generation_stage = FilmStage.GENERATING_CHAPTERS
            film.error = None
            return copy.deepcopy(film)

    def mark_orphaned_runs_failed(self, live_film_ids: Iterable[str], error: str) -> list[str]:
        live = set(live_film_ids)
        failed: list[str] = []
        with self._lock:
            for film in self._films.values():
                if film.generation_stage in IN_FLIGHT_STAGES and film.id not in live:
                    film.generation_stage = FilmStage.FAILED
                    film.error = error
                    failed.append(film.id)
        return failed

    def get_framework(self, film_id: str) -> StoryFramework | None:
        with self._lock:
            return self._frameworks.get(film_id)

    def save_framework(self, framework: StoryFramework) -> StoryFramework:
        with self._lock:
            if framework.film_id not in self._films:
                raise NotFoundError(f"Film '{framework.film_id}' not found")
            self._frameworks[framework.film_id] = framework
            return framework

    def create_chapter(self, chapter: Chapter) -> Chapter:
        with self._lock:
            if chapter.film_id not in self._films:
                raise NotFoundError(f"Film '{chapter.film_id}' not found")
            for existing in self._chapters.values():
                if existing.film_id == chapter.film_id and existing.chapter_number == chapter.chapter_number:
                    raise ChapterConflictError(
                        f"Chapter {chapter.chapter_number} already exists for film '{chapter.film_id}'"
                    )
            self._chapters[chapter.id] = copy.deepcopy(chapter)
            return copy.deepcopy(chapter)

    def get_chapter(self, chapter_id: str) -> Chapter | None:
        with self._lock:
            chapter = self._chapters.get(chapter_id)
            return copy.deepcopy(chapter) if chapter is not None else None

    def list_chapters(self, film_id: str) -> list[Chapter]:
        with self._lock:
            chapters = [chapter for chapter in self._chapters.values() if chapter.film_id == film_id]
            chapters.sort(key=lambda chapter: chapter.chapter_number)
            return [copy.deepcopy(chapter) for chapter in chapters]

    def save_chapter(self, chapter: Chapter) -> Chapter:
        with self._lock:
            if chapter.id not in self._chapters:
                raise NotFoundError(f"Chapter '{chapter.id}' not found")
            self._chapters[chapter.id] = copy.deepcopy(chapter)
            return copy.deepcopy(chapter)

    def save_generated_video(self, video: GeneratedVideo) -> GeneratedVideo:
        with self._lock:
            self._videos[video.id] = copy.deepcopy(video)
            return copy.deepcopy(video)

    def get_generated_video(self, video_id: str) -> GeneratedVideo | None:
        with self._lock:
            video = self._videos.get(video_id)
            return copy.deepcopy(video) if video is not None else None

    def list_generated_videos(self) -> list[GeneratedVideo]:
        with self._lock:
            videos = sorted(self._videos.values(), key=lambda video: video.created_at, reverse=True)
            return [copy.deepcopy(video) for video in videos]


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _load(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _film_params(film: Film) -> dict[str, Any]:
    return {
        "id": film.id,
        "title": film.title,
        "config": _dump(film.config.to_payload()),
        "generation_stage": FilmStage(film.generation_stage).value,
        "final_video_handle": film.final_video_handle,
        "total_duration_seconds": film.total_duration_seconds,
        "error": film.error,
        "created_at": film.created_at,
    }


def _chapter_params(chapter: Chapter) -> dict[str, Any]:
    return {
        "id": chapter.id,
        "film_id": chapter.film_id,
        "chapter_number": chapter.chapter_number,
        "chapter_type": chapter.chapter_type,
        "title": chapter.title,
        "summary": chapter.summary,
        "prompt": chapter.prompt,
        "artifact": _dump(chapter.artifact.to_payload()) if chapter.artifact is not None else None,
        "scene_prompts": _dump(list(chapter.scene_prompts)),
        "video_frames": _dump([frame.to_payload() for frame in chapter.video_frames]),
        "status": ChapterStatus(chapter.status).value,
        "video_handle": chapter.video_handle,
        "duration_seconds": chapter.duration_seconds,
        "error": chapter.error,
        "created_at": chapter.created_at,
    }


def _video_params(video: GeneratedVideo) -> dict[str, Any]:
    return {
        "id": video.id,
        "prompt": video.prompt,
        "duration": video.duration,
        "resolution": video.resolution,
        "model": video.model,
        "aspect_ratio": video.aspect_ratio,
        "status": GeneratedVideoStatus(video.status).value,
        "external_id": video.external_id,
        "video_url": video.video_url,
        "object_key": video.object_key,
        "created_at": video.created_at,
    }


class PostgresFilmStore:
    """Postgres-backed film store implementation."""

    def __init__(self, *, dsn: str, connect_factory: Any | None = None) -> None:
        self._dsn = dsn
        self._connect_factory = connect_factory

    def _connect(self) -> Any:
        if self._connect_factory is not None:
            return self._connect_factory()
        import psycopg
        from psycopg.rows import dict_row

        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _fetch_one(self, sql: str, params: dict[str, Any]) -> dict[str, Any] | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
            conn.commit()
        return row

    def _fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params or {})
                rows = cur.fetchall()
        return list(rows)

    @staticmethod
    def _row_to_film(row: dict[str, Any]) -> Film:
        return Film(
            id=str(row["id"]),
            title=str(row["title"]),
            config=FilmConfig.from_payload(_load(row.get("config"))),
            generation_stage=FilmStage(row["generation_stage"]),
            final_video_handle=row.get("final_video_handle"),
            total_duration_seconds=row.get("total_duration_seconds"),
            error=row.get("error"),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_framework(row: dict[str, Any]) -> StoryFramework:
        framework = StoryFramework.from_payload(
            str(row["film_id"]),
            _load(row.get("payload")) or {},
            framework_id=str(row["id"]),
        )
        return replace(framework, created_at=row["created_at"])

    @staticmethod
    def _row_to_chapter(row: dict[str, Any]) -> Chapter:
        raw_frames = _load(row.get("video_frames")) or []
        return Chapter(
            id=str(row["id"]),
            film_id=str(row["film_id"]),
            chapter_number=int(row["chapter_number"]),
            chapter_type=row.get("chapter_type"),
            title=str(row["title"]),
            summary=str(row.get("summary") or ""),
            prompt=row.get("prompt"),
            artifact=Artifact.from_payload(_load(row.get("artifact"))),
            scene_prompts=[str(item) for item in (_load(row.get("scene_prompts")) or [])],
            video_frames=[SceneWorkItem.from_payload(item) for item in raw_frames if isinstance(item, dict)],
            status=ChapterStatus(row["status"]),
            video_handle=row.get("video_handle"),
            duration_seconds=row.get("duration_seconds"),
            error=row.get("error"),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_video(row: dict[str, Any]) -> GeneratedVideo:
        return GeneratedVideo(
            id=str(row["id"]),
            prompt=str(row["prompt"]),
            duration=int(row["duration"]),
            resolution=str(row["resolution"]),
            model=str(row["model"]),
            aspect_ratio=str(row["aspect_ratio"]),
            status=GeneratedVideoStatus(row["status"]),
            external_id=row.get("external_id"),
            video_url=row.get("video_url"),
            object_key=row.get("object_key"),
            created_at=row["created_at"],
        )

    def ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(CREATE_FILMS_SQL)
                cur.execute(CREATE_FRAMEWORKS_SQL)
                cur.execute(CREATE_CHAPTERS_SQL)
                cur.execute(CREATE_GENERATED_VIDEOS_SQL)
            conn.commit()

    def create_film(self, film: Film) -> Film:
        row = self._fetch_one(INSERT_FILM_SQL, _film_params(film))
        if row is None:
            raise RuntimeError(f"Failed to insert film '{film.id}'")
        return self._row_to_film(row)

    def get_film(self, film_id: str) -> Film | None:
        row = self._fetch_one(GET_FILM_SQL, {"id": film_id})
        return self._row_to_film(row) if row is not None else None

    def list_films(self) -> list[Film]:
        return [self._row_to_film(row) for row in self._fetch_all(LIST_FILMS_SQL)]

    def save_film(self, film: Film) -> Film:
        row = self._fetch_one(UPDATE_FILM_SQL, _film_params(film))
        if row is None:
            raise NotFoundError(f"Film '{film.id}' not found")
        return self._row_to_film(row)

    def set_film_stage(self, film_id: str, stage: FilmStage, *, error: str | None = None) -> Film:
        film = self.get_film(film_id)
        if film is None:
            raise NotFoundError(f"Film '{film_id}' not found")
        film.generation_stage = ensure_film_transition(film.generation_stage, stage)
        if error is not None:
            film.error = error
        return self.save_film(film)

    def claim_run(self, film_id: str) -> Film:
        row = self._fetch_one(CLAIM_RUN_SQL, {"id": film_id, "allowed": list(_RESTARTABLE_VALUES)})
        if row is not None:
            return self._row_to_film(row)
        film = self.get_film(film_id)
        if film is None:
            raise NotFoundError(f"Film '{film_id}' not found")
        raise RunConflictError(
            f"Film '{film_id}' cannot start generation from stage {film.generation_stage.value}"
        )

    def mark_orphaned_runs_failed(self, live_film_ids: Iterable[str], error: str) -> list[str]:
        live = set(live_film_ids)
        stuck = self._fetch_all(SELECT_IN_FLIGHT_SQL, {"stages": list(_IN_FLIGHT_VALUES)})
        failed: list[str] = []
        for row in stuck:
            film_id = str(row["id"])
            if film_id in live:
                continue
            updated = self._fetch_one(
                MARK_FAILED_SQL,
                {"id": film_id, "error": error, "stages": list(_IN_FLIGHT_VALUES)},
            )
            if updated is not None:
                failed.append(film_id)
        return failed

    def get_framework(self, film_id: str) -> StoryFramework | None:
        row = self._fetch_one(GET_FRAMEWORK_SQL, {"film_id": film_id})
        return self._row_to_framework(row) if row is not None else None

    def save_framework(self, framework: StoryFramework) -> StoryFramework:
        row = self._fetch_one(
            UPSERT_FRAMEWORK_SQL,
            {
                "id": framework.id,
                "film_id": framework.film_id,
                "payload": _dump(framework.to_payload()),
                "created_at": framework.created_at,
            },
        )
        if row is None:
            raise RuntimeError(f"Failed to store framework for film '{framework.film_id}'")
        return self._row_to_framework(row)

    def create_chapter(self, chapter: Chapter) -> Chapter:
        row = self._fetch_one(INSERT_CHAPTER_SQL, _chapter_params(chapter))
        if row is None:
            raise ChapterConflictError(
                f"Chapter {chapter.chapter_number} already exists for film '{chapter.film_id}'"
            )
        return self._row_to_chapter(row)

    def get_chapter(self, chapter_id: str) -> Chapter | None:
        row = self._fetch_one(GET_CHAPTER_SQL, {"id": chapter_id})
        return self._row_to_chapter(row) if row is not None else None

    def list_chapters(self, film_id: str) -> list[Chapter]:
        return [self._row_to_chapter(row) for row in self._fetch_all(LIST_CHAPTERS_SQL, {"film_id": film_id})]

    def save_chapter(self, chapter: Chapter) -> Chapter:
        row = self._fetch_one(UPDATE_CHAPTER_SQL, _chapter_params(chapter))
        if row is None:
            raise NotFoundError(f"Chapter '{chapter.id}' not found")
        return self._row_to_chapter(row)

    def save_generated_video(self, video: GeneratedVideo) -> GeneratedVideo:
        row = self._fetch_one(UPSERT_GENERATED_VIDEO_SQL, _video_params(video))
        if row is None:
            raise RuntimeError(f"Failed to store generated video '{video.id}'")
        return self._row_to_video(row)

    def get_generated_video(self, video_id: str) -> GeneratedVideo | None:
        row = self._fetch_one(GET_GENERATED_VIDEO_SQL, {"id": video_id})
        return self._row_to_video(row) if row is not None else None

    def list_generated_videos(self) -> list[GeneratedVideo]:
        return [self._row_to_video(row) for row in self._fetch_all(LIST_GENERATED_VIDEOS_SQL)]


def build_film_store(*, dsn: str) -> FilmStore:
    """Use Postgres when a DSN is configured, otherwise keep state in memory."""
    if dsn:
        return PostgresFilmStore(dsn=dsn)
    return InMemoryFilmStore()
