"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


def _read_int(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(value, minimum)


def _read_float(name: str, default: float, minimum: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(value, minimum)


def _load_dotenv_file(path: Path) -> None:
    """Load KEY=VALUE pairs from a dotenv file without overriding existing env."""
    if not path.is_file():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            os.environ.setdefault(key, value)


def _load_dotenv_files(paths: Iterable[Path]) -> None:
    """Load multiple dotenv files in order."""
    for path in paths:
        _load_dotenv_file(path)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the generation pipeline, adapters and media storage."""

    google_api_key: str
    story_model_id: str
    scene_model_id: str
    llm_temperature: float
    videogen_api_key: str
    videogen_base_url: str
    videogen_request_timeout_seconds: int
    video_poll_interval_seconds: float
    video_poll_max_attempts: int
    scenes_per_chapter: int
    scene_duration_seconds: int
    video_aspect_ratio: str
    r2_account_id: str
    r2_bucket: str
    r2_access_key_id: str
    r2_secret_access_key: str
    r2_url_ttl_seconds: int
    temp_media_dir: str
    temp_media_max_age_hours: int
    ffmpeg_binary: str
    ffmpeg_timeout_seconds: int
    database_dsn: str
    event_queue_size: int

    @classmethod
    def from_env(
        cls,
        *,
        autoload_dotenv: bool = True,
        dotenv_files: tuple[Path, ...] | None = None,
    ) -> "Settings":
        default_temp = Path(__file__).resolve().parent.parent / "tmp_media"
        if autoload_dotenv:
            backend_root = Path(__file__).resolve().parent.parent
            default_dotenvs = (backend_root / ".env", backend_root / ".env.local")
            _load_dotenv_files(dotenv_files or default_dotenvs)
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY", "").strip(),
            story_model_id=os.getenv("STORY_MODEL_ID", "gemini-2.5-flash").strip(),
            scene_model_id=os.getenv("SCENE_MODEL_ID", "gemini-2.5-flash-lite").strip(),
            llm_temperature=_read_float("LLM_TEMPERATURE", default=0.8, minimum=0.0),
            videogen_api_key=os.getenv("VIDEOGEN_API_KEY", "").strip(),
            videogen_base_url=(
                os.getenv("VIDEOGEN_BASE_URL", "https://videogenapi.com/api/v1").strip().rstrip("/")
            ),
            videogen_request_timeout_seconds=_read_int(
                "VIDEOGEN_REQUEST_TIMEOUT_SECONDS",
                default=60,
                minimum=1,
            ),
            video_poll_interval_seconds=_read_float("VIDEO_POLL_INTERVAL_SECONDS", default=5.0, minimum=0.0),
            video_poll_max_attempts=_read_int("VIDEO_POLL_MAX_ATTEMPTS", default=60, minimum=1),
            scenes_per_chapter=_read_int("SCENES_PER_CHAPTER", default=3, minimum=1),
            scene_duration_seconds=_read_int("SCENE_DURATION_SECONDS", default=10, minimum=1),
            video_aspect_ratio=os.getenv("VIDEO_ASPECT_RATIO", "16:9").strip() or "16:9",
            r2_account_id=os.getenv("R2_ACCOUNT_ID", "").strip(),
            r2_bucket=os.getenv("R2_BUCKET", "").strip(),
            r2_access_key_id=os.getenv("R2_ACCESS_KEY_ID", "").strip(),
            r2_secret_access_key=os.getenv("R2_SECRET_ACCESS_KEY", "").strip(),
            r2_url_ttl_seconds=_read_int("R2_URL_TTL_SECONDS", default=3600, minimum=1),
            temp_media_dir=os.getenv("TEMP_MEDIA_DIR", str(default_temp)).strip(),
            temp_media_max_age_hours=_read_int("TEMP_MEDIA_MAX_AGE_HOURS", default=24, minimum=1),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg").strip() or "ffmpeg",
            ffmpeg_timeout_seconds=_read_int("FFMPEG_TIMEOUT_SECONDS", default=600, minimum=1),
            database_dsn=os.getenv("DATABASE_DSN", "").strip(),
            event_queue_size=_read_int("EVENT_QUEUE_SIZE", default=100, minimum=1),
        )

    def missing_r2_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.r2_account_id:
            missing.append("R2_ACCOUNT_ID")
        if not self.r2_bucket:
            missing.append("R2_BUCKET")
        if not self.r2_access_key_id:
            missing.append("R2_ACCESS_KEY_ID")
        if not self.r2_secret_access_key:
            missing.append("R2_SECRET_ACCESS_KEY")
        return missing

    def missing_llm_fields(self) -> list[str]:
        """Return missing settings required by the text generation adapter."""
        missing: list[str] = []
        if not self.google_api_key:
            missing.append("GOOGLE_API_KEY")
        return missing

    def missing_video_fields(self) -> list[str]:
        """Return missing settings required by the video generation adapter."""
        missing: list[str] = []
        if not self.videogen_api_key:
            missing.append("VIDEOGEN_API_KEY")
        if not self.videogen_base_url:
            missing.append("VIDEOGEN_BASE_URL")
        return missing
