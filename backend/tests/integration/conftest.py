"""Shared fixtures for integration tests using a real ffmpeg binary and real R2."""

import os
import shutil
import subprocess
from pathlib import Path
from uuid import uuid4

import pytest

from cinegen.config import Settings
from cinegen.storage import MediaStoreError, R2MediaStore


_BACKEND_ROOT = Path(__file__).resolve().parents[2]
_R2_ENV_FILE = _BACKEND_ROOT / ".env.r2"


def _read_env(name: str, default: str = "") -> str:
    """Return a trimmed environment variable value."""
    return os.getenv(name, default).strip()


# ---------------------------------------------------------------------------
# 2.1 — ffmpeg binary and generated sample clips (skip if ffmpeg is missing)
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def ffmpeg_binary() -> str:
    """Return the ffmpeg binary path, or skip if it is not installed."""
    binary = shutil.which(_read_env("FFMPEG_BINARY", "ffmpeg") or "ffmpeg")
    if binary is None:
        pytest.skip("ffmpeg binary not found on PATH")
    return binary


def _render_test_clip(ffmpeg_binary: str, output_path: Path, seconds: int, colour: str) -> None:
    command = [
        ffmpeg_binary,
        "-hide_banner",
        "-y",
        "-f",
        "lavfi",
        "-i",
        f"color=c={colour}:duration={seconds}:size=160x90:rate=10",
        "-c:v",
        "mpeg4",
        "-pix_fmt",
        "yuv420p",
        str(output_path),
    ]
    result = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False, timeout=60)
    if result.returncode != 0:
        pytest.skip(f"ffmpeg could not render a test clip: {result.stderr.decode(errors='replace')[-300:]}")


@pytest.fixture(scope="session")
def sample_clips(ffmpeg_binary, tmp_path_factory) -> list[Path]:
    """Render a 1 s red clip and a 2 s blue clip with identical codec parameters."""
    clip_dir = tmp_path_factory.mktemp("clips")
    clips = []
    for index, (colour, seconds) in enumerate((("red", 1), ("blue", 2)), start=1):
        path = clip_dir / f"clip_{index}.mp4"
        _render_test_clip(ffmpeg_binary, path, seconds=seconds, colour=colour)
        clips.append(path)
    return clips


@pytest.fixture(scope="session")
def ffprobe_binary(ffmpeg_binary) -> str | None:
    return shutil.which("ffprobe")


# ---------------------------------------------------------------------------
# 2.2 — R2 media store (skips if credentials are missing)
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def r2_settings() -> Settings:
    """Return settings for R2 integration tests, or skip when R2 is not configured."""
    settings = Settings.from_env(dotenv_files=(_R2_ENV_FILE,))
    missing = settings.missing_r2_fields()
    if missing:
        pytest.skip(f"R2 integration tests require: {', '.join(missing)}")
    return settings


@pytest.fixture()
def r2_store(r2_settings):
    """Yield a real R2 store plus a unique key prefix; objects under it are removed afterwards."""
    store = R2MediaStore(
        account_id=r2_settings.r2_account_id,
        bucket=r2_settings.r2_bucket,
        access_key_id=r2_settings.r2_access_key_id,
        secret_access_key=r2_settings.r2_secret_access_key,
        default_url_ttl_seconds=r2_settings.r2_url_ttl_seconds,
    )
    prefix = f"itest/{uuid4()}"
    created: list[str] = []
    yield store, prefix, created
    for key in created:
        try:
            store.delete_object(key)
        except MediaStoreError as exc:
            print(f"R2 cleanup failed for {key}: {exc}")
