"""Fake adapters and settings factory shared by the test modules."""

import json
import re
from dataclasses import replace
from pathlib import Path
from typing import Callable

from cinegen.config import Settings
from cinegen.media_merge import MergeError
from cinegen.text_generation import AdapterCallError
from cinegen.video_generation import PollResult, SubmitResult, VideoGenerationError, VideoRequest


def make_settings(tmp_path: Path | None = None, **overrides) -> Settings:
    """Build fully-populated settings without reading the environment."""
    settings = Settings(
        google_api_key="test-google-key",
        story_model_id="gemini-test",
        scene_model_id="gemini-test-lite",
        llm_temperature=0.8,
        videogen_api_key="test-videogen-key",
        videogen_base_url="https://videogen.example/api/v1",
        videogen_request_timeout_seconds=5,
        video_poll_interval_seconds=0.0,
        video_poll_max_attempts=3,
        scenes_per_chapter=3,
        scene_duration_seconds=10,
        video_aspect_ratio="16:9",
        r2_account_id="",
        r2_bucket="",
        r2_access_key_id="",
        r2_secret_access_key="",
        r2_url_ttl_seconds=3600,
        temp_media_dir=str(tmp_path) if tmp_path is not None else "/tmp/cinegen-tests",
        temp_media_max_age_hours=24,
        ffmpeg_binary="ffmpeg",
        ffmpeg_timeout_seconds=60,
        database_dsn="",
        event_queue_size=100,
    )
    return replace(settings, **overrides)


class FakeTextGenerator:
    """Text generator returning scripted responses.

    `responder` is either a list consumed in order (items may be exceptions
    to raise) or a callable taking `(system_prompt, user_prompt)`.
    """

    def __init__(self, responder: list | Callable[[str, str], str]) -> None:
        self._responder = responder
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if callable(self._responder):
            response = self._responder(system_prompt, user_prompt)
        else:
            response = self._responder.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def prompts_containing(self, needle: str) -> list[str]:
        return [user for _, user in self.calls if needle in user]


FRAMEWORK_PAYLOAD = {
    "premise": "A lighthouse keeper finds a map that rewrites the coastline.",
    "hook": "The lamp goes dark the night the map appears.",
    "genres": ["Mystery", "Drama"],
    "tone": "Brooding",
    "setting": {"location": "Storm coast", "time": "1920s", "weather": "Gales", "atmosphere": "Uneasy"},
    "characters": [
        {"name": "Ada", "age": 41, "role": "protagonist", "description": "Keeper", "actor": "weathered woman"},
    ],
}

_CHAPTER_REQUEST = re.compile(r"Write chapter (\d+)")
_SPLIT_REQUEST = re.compile(r"create (\d+) detailed video scene prompts")
_SPLIT_TITLE = re.compile(r"Chapter Title: Title (\d+)")


def story_responder(
    *,
    prose_chapters: frozenset[int] = frozenset(),
    failing_chapters: frozenset[int] = frozenset(),
) -> Callable[[str, str], str]:
    """Route framework, chapter and scene-split prompts to canned JSON answers.

    Chapters are titled `Title <n>` with body `Body of chapter <n>`; scene
    prompts come back as `Chapter <n> scene <k>`.
    """

    def _respond(system_prompt: str, user_prompt: str):
        if "story framework" in user_prompt:
            return json.dumps(FRAMEWORK_PAYLOAD)
        split = _SPLIT_REQUEST.search(user_prompt)
        if split:
            count = int(split.group(1))
            number = int(_SPLIT_TITLE.search(user_prompt).group(1))
            return json.dumps([f"Chapter {number} scene {k}" for k in range(1, count + 1)])
        chapter = _CHAPTER_REQUEST.search(user_prompt)
        if chapter:
            number = int(chapter.group(1))
            if number in failing_chapters:
                return AdapterCallError("model overloaded")
            if number in prose_chapters:
                return "I'm sorry, I can only describe this chapter in prose."
            payload = {
                "title": f"Title {number}",
                "summary": f"Body of chapter {number}",
                "prompt": f"Wide shot for chapter {number}",
            }
            if number == 1:
                payload["artifact"] = {"name": "Brass key", "description": "Tarnished", "significance": "Entry"}
            return "```json\n" + json.dumps(payload) + "\n```"
        raise AssertionError(f"Unexpected prompt: {user_prompt[:80]}")

    return _respond


class FakeVideoGenerator:
    """Video generator that completes immediately or after polling."""

    def __init__(
        self,
        *,
        immediate: bool = True,
        fail_when: Callable[[VideoRequest], bool] | None = None,
        on_submit: Callable[[VideoRequest], None] | None = None,
        poll_results: list | None = None,
    ) -> None:
        self.immediate = immediate
        self.fail_when = fail_when
        self.on_submit = on_submit
        self.poll_results = poll_results
        self.submitted: list[VideoRequest] = []
        self.polled: list[str] = []

    async def submit(self, request: VideoRequest) -> SubmitResult:
        self.submitted.append(request)
        if self.on_submit is not None:
            self.on_submit(request)
        if self.fail_when is not None and self.fail_when(request):
            raise VideoGenerationError(f"Provider rejected prompt: {request.prompt}")
        job_id = f"job-{len(self.submitted)}"
        if self.immediate:
            return SubmitResult(video_url=f"https://cdn.example/{job_id}.mp4", job_id=job_id)
        return SubmitResult(job_id=job_id)

    async def poll_status(self, job_id: str) -> PollResult:
        self.polled.append(job_id)
        if self.poll_results:
            result = self.poll_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return PollResult(video_url=f"https://cdn.example/{job_id}.mp4", status="completed")

    def submitted_prompts(self) -> list[str]:
        return [request.prompt for request in self.submitted]


class FakeMediaStore:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    def put_bytes(self, object_key: str, data: bytes, content_type: str = "video/mp4") -> str:
        self.objects[object_key] = data
        return object_key

    def upload_file(self, file_path: str, object_key: str, content_type: str = "video/mp4") -> str:
        self.objects[object_key] = Path(file_path).read_bytes()
        return object_key

    def delete_object(self, object_key: str) -> None:
        self.objects.pop(object_key, None)

    def verify_object(self, object_key: str) -> bool:
        return object_key in self.objects

    def sign_read_url(self, object_key: str, expires_in: int | None = None) -> str:
        return f"https://signed.example/{object_key}?exp={expires_in or 3600}"


class FakeMergeEngine:
    """Records merge calls; a single input passes through like the real engine."""

    def __init__(self, *, fail_keys: frozenset[str] = frozenset()) -> None:
        self.fail_keys = fail_keys
        self.calls: list[tuple[list[str], str]] = []

    async def merge(self, handles, object_key, *, cancel_token=None) -> str:
        self.calls.append((list(handles), object_key))
        if object_key in self.fail_keys:
            raise MergeError(f"ffmpeg concat failed for {object_key}")
        if not handles:
            raise MergeError("Cannot merge an empty list of clips")
        if len(handles) == 1:
            return handles[0]
        return object_key
