"""Tests for cinegen.config settings parsing."""

from cinegen.config import Settings


class TestSettings:
    def test_pipeline_defaults(self, monkeypatch):
        for name in (
            "SCENES_PER_CHAPTER",
            "SCENE_DURATION_SECONDS",
            "VIDEO_POLL_INTERVAL_SECONDS",
            "VIDEO_POLL_MAX_ATTEMPTS",
            "EVENT_QUEUE_SIZE",
            "STORY_MODEL_ID",
        ):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env(autoload_dotenv=False)

        assert settings.scenes_per_chapter == 3
        assert settings.scene_duration_seconds == 10
        assert settings.video_poll_interval_seconds == 5.0
        assert settings.video_poll_max_attempts == 60
        assert settings.event_queue_size == 100
        assert settings.story_model_id == "gemini-2.5-flash"

    def test_numeric_settings_parse(self, monkeypatch):
        monkeypatch.setenv("SCENES_PER_CHAPTER", "5")
        monkeypatch.setenv("VIDEO_POLL_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("VIDEO_POLL_MAX_ATTEMPTS", "7")
        settings = Settings.from_env(autoload_dotenv=False)

        assert settings.scenes_per_chapter == 5
        assert settings.video_poll_interval_seconds == 2.5
        assert settings.video_poll_max_attempts == 7

    def test_invalid_numbers_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("SCENES_PER_CHAPTER", "many")
        monkeypatch.setenv("VIDEO_POLL_MAX_ATTEMPTS", "")
        settings = Settings.from_env(autoload_dotenv=False)

        assert settings.scenes_per_chapter == 3
        assert settings.video_poll_max_attempts == 60

    def test_numbers_are_clamped_to_minimum(self, monkeypatch):
        monkeypatch.setenv("SCENES_PER_CHAPTER", "0")
        monkeypatch.setenv("VIDEO_POLL_INTERVAL_SECONDS", "-3")
        settings = Settings.from_env(autoload_dotenv=False)

        assert settings.scenes_per_chapter == 1
        assert settings.video_poll_interval_seconds == 0.0

    def test_base_url_trailing_slash_trimmed(self, monkeypatch):
        monkeypatch.setenv("VIDEOGEN_BASE_URL", "https://videogen.example/api/v1/")
        settings = Settings.from_env(autoload_dotenv=False)
        assert settings.videogen_base_url == "https://videogen.example/api/v1"

    def test_missing_field_reports(self, monkeypatch):
        for name in ("GOOGLE_API_KEY", "VIDEOGEN_API_KEY", "R2_ACCOUNT_ID", "R2_BUCKET"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("R2_ACCESS_KEY_ID", "key")
        monkeypatch.setenv("R2_SECRET_ACCESS_KEY", "secret")
        settings = Settings.from_env(autoload_dotenv=False)

        assert settings.missing_llm_fields() == ["GOOGLE_API_KEY"]
        assert settings.missing_video_fields() == ["VIDEOGEN_API_KEY"]
        assert settings.missing_r2_fields() == ["R2_ACCOUNT_ID", "R2_BUCKET"]

    def test_dotenv_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text('# comment\nSTORY_MODEL_ID="from-file"\nSCENE_MODEL_ID=scene-from-file\n')
        monkeypatch.setenv("STORY_MODEL_ID", "from-env")
        # Registered with monkeypatch so the value loaded from the file is removed afterwards.
        monkeypatch.setenv("SCENE_MODEL_ID", "placeholder")
        monkeypatch.delenv("SCENE_MODEL_ID")

        settings = Settings.from_env(dotenv_files=(env_file,))

        assert settings.story_model_id == "from-env"
        assert settings.scene_model_id == "scene-from-file"
