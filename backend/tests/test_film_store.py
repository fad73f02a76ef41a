"""Tests for cinegen.film_store — in-memory store semantics and Postgres row mapping."""

import json
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from cinegen.film_store import (
    CLAIM_RUN_SQL,
    ChapterConflictError,
    InMemoryFilmStore,
    NotFoundError,
    PostgresFilmStore,
    RunConflictError,
    build_film_store,
)
from cinegen.records import Chapter, Film, FilmConfig, GeneratedVideo, SceneWorkItem, StoryFramework, new_id
from cinegen.stages import ChapterStatus, FilmMode, FilmStage, IllegalTransitionError, SceneStatus
from fakes import FRAMEWORK_PAYLOAD


def _chapter(film_id: str, number: int, **changes) -> Chapter:
    return Chapter(id=new_id(), film_id=film_id, chapter_number=number, title=f"T{number}", summary="S", **changes)


class TestInMemoryFilms:
    def test_create_and_get_returns_copies(self, store, make_film):
        film = make_film()
        fetched = store.get_film(film.id)
        fetched.title = "mutated"
        assert store.get_film(film.id).title == "The Lighthouse Map"

    def test_list_newest_first(self, store):
        older = Film.create("Old")
        older.created_at = datetime(2024, 1, 1, tzinfo=UTC)
        newer = Film.create("New")
        store.create_film(older)
        store.create_film(newer)
        assert [film.title for film in store.list_films()] == ["New", "Old"]

    def test_save_unknown_film_raises(self, store):
        with pytest.raises(NotFoundError):
            store.save_film(Film.create("Ghost"))

    def test_set_stage_validates_transition(self, store, make_film):
        film = make_film()
        with pytest.raises(IllegalTransitionError):
            store.set_film_stage(film.id, FilmStage.MERGING_FINAL)

    def test_set_stage_records_error(self, store, make_film):
        film = make_film()
        store.set_film_stage(film.id, FilmStage.FAILED, error="boom")
        stored = store.get_film(film.id)
        assert stored.generation_stage == FilmStage.FAILED
        assert stored.error == "boom"


class TestClaimRun:
    def test_claim_from_idle(self, store, make_film):
        film = make_film()
        claimed = store.claim_run(film.id)
        assert claimed.generation_stage == FilmStage.GENERATING_CHAPTERS

    def test_claim_from_failed_clears_error(self, store, make_film):
        film = make_film()
        store.set_film_stage(film.id, FilmStage.FAILED, error="earlier failure")
        claimed = store.claim_run(film.id)
        assert claimed.error is None

    def test_claim_from_in_flight_stage_conflicts(self, store, make_film):
        film = make_film()
        store.claim_run(film.id)
        store.set_film_stage(film.id, FilmStage.GENERATING_PROMPTS)
        with pytest.raises(RunConflictError):
            store.claim_run(film.id)

    def test_claim_completed_conflicts(self, store, make_film):
        film = make_film()
        stored = store.get_film(film.id)
        stored.generation_stage = FilmStage.COMPLETED
        store.save_film(stored)
        with pytest.raises(RunConflictError):
            store.claim_run(film.id)

    def test_claim_unknown_film(self, store):
        with pytest.raises(NotFoundError):
            store.claim_run("missing")


class TestOrphanedRuns:
    def test_in_flight_films_without_live_run_fail(self, store, make_film):
        orphan = make_film("Orphan")
        live = make_film("Live")
        idle = make_film("Idle")
        store.claim_run(orphan.id)
        store.claim_run(live.id)

        failed = store.mark_orphaned_runs_failed([live.id], "interrupted")

        assert failed == [orphan.id]
        assert store.get_film(orphan.id).generation_stage == FilmStage.FAILED
        assert store.get_film(orphan.id).error == "interrupted"
        assert store.get_film(live.id).generation_stage == FilmStage.GENERATING_CHAPTERS
        assert store.get_film(idle.id).generation_stage == FilmStage.IDLE


class TestFrameworksAndChapters:
    def test_framework_is_replaced(self, store, make_film):
        film = make_film()
        store.save_framework(StoryFramework.from_payload(film.id, FRAMEWORK_PAYLOAD))
        store.save_framework(StoryFramework.from_payload(film.id, {"premise": "Second"}))
        assert store.get_framework(film.id).premise == "Second"

    def test_framework_for_unknown_film(self, store):
        with pytest.raises(NotFoundError):
            store.save_framework(StoryFramework.from_payload("missing", FRAMEWORK_PAYLOAD))

    def test_duplicate_chapter_number_conflicts(self, store, make_film):
        film = make_film()
        store.create_chapter(_chapter(film.id, 1))
        with pytest.raises(ChapterConflictError):
            store.create_chapter(_chapter(film.id, 1))

    def test_list_chapters_ordered(self, store, make_film):
        film = make_film()
        for number in (3, 1, 2):
            store.create_chapter(_chapter(film.id, number))
        assert [chapter.chapter_number for chapter in store.list_chapters(film.id)] == [1, 2, 3]

    def test_saved_frames_are_isolated(self, store, make_film):
        film = make_film()
        chapter = store.create_chapter(_chapter(film.id, 1, video_frames=[SceneWorkItem(1, "a")]))
        chapter.video_frames.append(SceneWorkItem(2, "b"))
        assert len(store.get_chapter(chapter.id).video_frames) == 1

    def test_save_unknown_chapter(self, store, make_film):
        film = make_film()
        with pytest.raises(NotFoundError):
            store.save_chapter(_chapter(film.id, 1))


class TestGeneratedVideos:
    def test_upsert_and_list(self, store):
        video = store.save_generated_video(GeneratedVideo(id="v1", prompt="A storm"))
        video.video_url = "https://cdn/v1.mp4"
        store.save_generated_video(video)
        assert store.get_generated_video("v1").video_url == "https://cdn/v1.mp4"
        assert [item.id for item in store.list_generated_videos()] == ["v1"]


class TestBuildFilmStore:
    def test_without_dsn_uses_memory(self):
        assert isinstance(build_film_store(dsn=""), InMemoryFilmStore)

    def test_with_dsn_uses_postgres(self):
        assert isinstance(build_film_store(dsn="postgresql://localhost/films"), PostgresFilmStore)


def _fake_connection(fetchone=None, fetchall=None):
    conn = MagicMock(name="conn")
    cursor = MagicMock(name="cursor")
    conn.__enter__.return_value = conn
    conn.cursor.return_value.__enter__.return_value = cursor
    cursor.fetchone.side_effect = list(fetchone or [])
    cursor.fetchall.return_value = fetchall or []
    return conn, cursor


def _film_row(stage: str = "generating_chapters") -> dict:
    return {
        "id": "film-1",
        "title": "Tide",
        "config": {"mode": "structured_18", "chapter_count": 5},
        "generation_stage": stage,
        "final_video_handle": None,
        "total_duration_seconds": None,
        "error": None,
        "created_at": datetime(2025, 1, 1, tzinfo=UTC),
    }


class TestPostgresFilmStore:
    def test_claim_run_passes_restartable_stages(self):
        conn, cursor = _fake_connection(fetchone=[_film_row()])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        film = store.claim_run("film-1")

        sql, params = cursor.execute.call_args.args
        assert sql == CLAIM_RUN_SQL
        assert set(params["allowed"]) == {"idle", "failed", "generating_chapters"}
        assert film.generation_stage == FilmStage.GENERATING_CHAPTERS
        assert film.config.mode == FilmMode.STRUCTURED
        conn.commit.assert_called()

    def test_claim_run_conflict_when_no_row_updated(self):
        conn, _ = _fake_connection(fetchone=[None, _film_row("generating_videos")])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        with pytest.raises(RunConflictError):
            store.claim_run("film-1")

    def test_claim_run_missing_film(self):
        conn, _ = _fake_connection(fetchone=[None, None])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        with pytest.raises(NotFoundError):
            store.claim_run("film-1")

    def test_create_chapter_conflict(self):
        conn, _ = _fake_connection(fetchone=[None])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        with pytest.raises(ChapterConflictError):
            store.create_chapter(_chapter("film-1", 1))

    def test_chapter_row_mapping_decodes_json_columns(self):
        row = {
            "id": "c1",
            "film_id": "film-1",
            "chapter_number": 1,
            "chapter_type": "hook",
            "title": "The Hook",
            "summary": "Glass.",
            "prompt": None,
            "artifact": json.dumps({"name": "Brass key"}),
            "scene_prompts": ["a", "b"],
            "video_frames": [{"frame_number": 1, "prompt": "a", "status": "completed", "video_url": "https://c/1"}],
            "status": "merging",
            "video_handle": None,
            "duration_seconds": None,
            "error": None,
            "created_at": datetime(2025, 1, 1, tzinfo=UTC),
        }
        conn, _ = _fake_connection(fetchone=[row])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        chapter = store.get_chapter("c1")

        assert chapter.artifact.name == "Brass key"
        assert chapter.scene_prompts == ["a", "b"]
        assert chapter.video_frames[0].status == SceneStatus.COMPLETED
        assert chapter.status == ChapterStatus.MERGING

    def test_mark_orphans_skips_live_runs(self):
        conn, cursor = _fake_connection(fetchone=[{"id": "film-2"}], fetchall=[{"id": "film-1"}, {"id": "film-2"}])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        assert store.mark_orphaned_runs_failed(["film-1"], "interrupted") == ["film-2"]
        last_params = cursor.execute.call_args.args[1]
        assert last_params["id"] == "film-2"
        assert last_params["error"] == "interrupted"

    def test_film_params_serialize_config(self):
        conn, cursor = _fake_connection(fetchone=[_film_row("idle")])
        store = PostgresFilmStore(dsn="postgresql://x", connect_factory=lambda: conn)

        store.create_film(Film(id="film-1", title="Tide", config=FilmConfig(mode=FilmMode.STRUCTURED)))

        params = cursor.execute.call_args.args[1]
        assert json.loads(params["config"])["mode"] == "structured_18"
        assert params["generation_stage"] == "idle"
