"""Tests for cinegen.records payload mapping and helpers."""

from cinegen.records import (
    STRUCTURED_CHAPTER_COUNT,
    Artifact,
    CastMember,
    Chapter,
    Film,
    FilmConfig,
    SceneWorkItem,
    StoryFramework,
    build_scene_work_items,
)
from cinegen.stages import FilmMode, FilmStage, SceneStatus


class TestFilmConfig:
    def test_structured_mode_always_has_eighteen_chapters(self):
        config = FilmConfig(mode=FilmMode.STRUCTURED, chapter_count=4)
        assert config.effective_chapter_count == STRUCTURED_CHAPTER_COUNT == 18

    def test_freeform_uses_requested_count(self):
        assert FilmConfig(chapter_count=7).effective_chapter_count == 7

    def test_payload_round_trip_keeps_mode(self):
        config = FilmConfig(mode=FilmMode.STRUCTURED, frame_size="4K", narrator_voice="female-narrator")
        assert FilmConfig.from_payload(config.to_payload()) == config

    def test_from_payload_fills_defaults(self):
        config = FilmConfig.from_payload({"mode": "freeform"})
        assert config.chapter_count == 5
        assert config.video_model == "kling_21"

    def test_from_payload_tolerates_non_dict(self):
        assert FilmConfig.from_payload(None) == FilmConfig()


class TestFilm:
    def test_create_starts_idle(self):
        film = Film.create("Night Train")
        assert film.generation_stage == FilmStage.IDLE
        assert film.final_video_handle is None
        assert film.id


class TestStoryFramework:
    def test_from_payload_reads_all_fields(self):
        framework = StoryFramework.from_payload(
            "film-1",
            {
                "premise": "P",
                "hook": "H",
                "genres": ["Noir"],
                "tone": "Dark",
                "setting": {"location": "Docks"},
                "characters": [{"name": "Vic", "age": "52", "role": "protagonist"}],
            },
        )
        assert framework.film_id == "film-1"
        assert framework.genres == ("Noir",)
        assert framework.setting.location == "Docks"
        assert framework.characters == (CastMember(name="Vic", age=52, role="protagonist"),)

    def test_single_genre_key_is_accepted(self):
        framework = StoryFramework.from_payload("film-1", {"premise": "P", "genre": "Thriller"})
        assert framework.genres == ("Thriller",)

    def test_comma_separated_genres(self):
        framework = StoryFramework.from_payload("film-1", {"premise": "P", "genres": "Drama, Romance"})
        assert framework.genres == ("Drama", "Romance")

    def test_unparseable_age_becomes_none(self):
        member = CastMember.from_payload({"name": "Mo", "age": "thirties"})
        assert member.age is None

    def test_non_dict_characters_are_skipped(self):
        framework = StoryFramework.from_payload("film-1", {"premise": "P", "characters": ["Vic", {"name": "Mo"}]})
        assert [member.name for member in framework.characters] == ["Mo"]


class TestArtifact:
    def test_missing_name_gives_none(self):
        assert Artifact.from_payload({"description": "shiny"}) is None
        assert Artifact.from_payload("a key") is None

    def test_name_is_trimmed(self):
        assert Artifact.from_payload({"name": "  Brass key "}).name == "Brass key"


class TestSceneWorkItems:
    def test_frame_numbers_match_prompt_positions(self):
        items = build_scene_work_items(["a", "b", "c"])
        assert [(item.frame_number, item.prompt) for item in items] == [(1, "a"), (2, "b"), (3, "c")]
        assert all(item.status == SceneStatus.PENDING for item in items)

    def test_handle_prefers_object_key(self):
        item = SceneWorkItem(1, "a", video_url="https://cdn/x.mp4", object_key="films/f/x.mp4")
        assert item.handle == "films/f/x.mp4"

    def test_completed_without_handle_is_not_mergeable(self):
        assert not SceneWorkItem(1, "a", status=SceneStatus.COMPLETED).is_usable_for_merge

    def test_payload_round_trip(self):
        item = SceneWorkItem(2, "b", status=SceneStatus.PROCESSING, external_id="job-9")
        assert SceneWorkItem.from_payload(item.to_payload()) == item


class TestChapter:
    def test_whitespace_summary_has_no_narrative(self):
        chapter = Chapter(id="c", film_id="f", chapter_number=1, title="T", summary="   ")
        assert not chapter.has_narrative

    def test_usable_frames_are_ordered_and_filtered(self):
        chapter = Chapter(
            id="c",
            film_id="f",
            chapter_number=1,
            title="T",
            summary="S",
            video_frames=[
                SceneWorkItem(3, "c", status=SceneStatus.COMPLETED, video_url="https://cdn/3.mp4"),
                SceneWorkItem(1, "a", status=SceneStatus.COMPLETED, video_url="https://cdn/1.mp4"),
                SceneWorkItem(2, "b", status=SceneStatus.FAILED),
            ],
        )
        assert [frame.frame_number for frame in chapter.usable_frames()] == [1, 3]
