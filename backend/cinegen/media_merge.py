"""Lossless ffmpeg concatenation of stored video clips."""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Sequence
from uuid import uuid4

import httpx

from cinegen.storage import MediaStore, download_bytes, resolve_read_url

if TYPE_CHECKING:
    from cinegen.config import Settings
    from cinegen.jobs import CancelToken

logger = logging.getLogger(__name__)


class MergeError(RuntimeError):
    """Raised when clips cannot be concatenated."""


def _quote_concat_path(path: Path) -> str:
    return str(path).replace("'", "'\\''")


def build_concat_list(paths: Sequence[Path]) -> str:
    """Render the ffmpeg concat demuxer list, one `file '<path>'` line per input."""
    return "".join(f"file '{_quote_concat_path(path)}'\n" for path in paths)


def build_concat_command(ffmpeg_binary: str, list_path: Path, output_path: Path) -> list[str]:
    return [
        ffmpeg_binary,
        "-hide_banner",
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(list_path),
        "-c",
        "copy",
        str(output_path),
    ]


def run_concat(command: list[str], timeout_seconds: float) -> None:
    """Run an ffmpeg concat command, raising MergeError with captured stderr on failure."""
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            timeout=timeout_seconds,
        )
    except FileNotFoundError as exc:
        raise MergeError(f"ffmpeg binary not found: {command[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise MergeError("ffmpeg concat timed out") from exc
    except OSError as exc:
        raise MergeError("Unable to execute ffmpeg") from exc

    if result.returncode != 0:
        stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
        raise MergeError(f"ffmpeg concat failed with exit code {result.returncode}: {stderr[-2000:]}")


def _write_scratch(operation, *args, **kwargs):
    """Run a scratch-directory filesystem operation, mapping OSError to MergeError."""
    try:
        return operation(*args, **kwargs)
    except OSError as exc:
        raise MergeError(f"Merge scratch I/O failed: {exc}") from exc


class MergeEngine:
    """Concatenate clips referenced by handles into a single stored video."""

    def __init__(
        self,
        settings: "Settings",
        media_store: MediaStore | None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._media_store = media_store
        self._http_client = http_client
        self._work_root = Path(settings.temp_media_dir) / "merges"

    async def merge(
        self,
        handles: Sequence[str],
        object_key: str,
        *,
        cancel_token: "CancelToken | None" = None,
    ) -> str:
        """Merge `handles` in order and return the handle of the result.

        A single input is returned unchanged without running ffmpeg.
        """
        if not handles:
            raise MergeError("Cannot merge an empty list of clips")
        if len(handles) == 1:
            return handles[0]
        if self._media_store is None:
            raise MergeError("Merging requires a configured media store")

        work_dir = self._work_root / str(uuid4())
        try:
            _write_scratch(work_dir.mkdir, parents=True, exist_ok=True)
            input_paths: list[Path] = []
            for index, handle in enumerate(handles, start=1):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                url = resolve_read_url(handle, self._media_store)
                data = await download_bytes(url, http_client=self._http_client)
                path = work_dir / f"input_{index:03d}.mp4"
                _write_scratch(path.write_bytes, data)
                input_paths.append(path)

            list_path = work_dir / "concat.txt"
            _write_scratch(list_path.write_text, build_concat_list(input_paths), encoding="utf-8")
            output_path = work_dir / "out.mp4"
            command = build_concat_command(self._settings.ffmpeg_binary, list_path, output_path)

            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            await asyncio.to_thread(run_concat, command, self._settings.ffmpeg_timeout_seconds)
            if not output_path.is_file():
                raise MergeError("ffmpeg concat produced no output file")

            stored_key = await asyncio.to_thread(self._media_store.upload_file, str(output_path), object_key)
            logger.info("merge.completed object_key=%s inputs=%s", stored_key, len(handles))
            return stored_key
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
