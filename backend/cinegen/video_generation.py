"""Text-to-video provider adapter and completion polling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

import httpx

from cinegen.text_generation import AdapterCallError

if TYPE_CHECKING:
    from cinegen.config import Settings
    from cinegen.jobs import CancelToken

logger = logging.getLogger(__name__)

_FAILED_STATUSES = frozenset({"failed", "error"})


class VideoGenerationError(AdapterCallError):
    """Raised when the video provider rejects a request or reports a failed job."""


class PollTimeoutError(RuntimeError):
    """Raised when a submitted job does not finish within the retry policy."""


@dataclass(frozen=True, slots=True)
class VideoRequest:
    prompt: str
    model: str = "kling_21"
    duration_seconds: int = 10
    resolution: str = "1080p"
    aspect_ratio: str = "16:9"
    image_url: str | None = None
    seed: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": self.prompt,
            "duration": self.duration_seconds,
            "resolution": self.resolution,
            "aspect_ratio": self.aspect_ratio,
        }
        if self.image_url:
            payload["image_url"] = self.image_url
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload


@dataclass(frozen=True, slots=True)
class SubmitResult:
    """Either an immediate `video_url` or a `job_id` to poll."""

    video_url: str | None = None
    job_id: str | None = None


@dataclass(frozen=True, slots=True)
class PollResult:
    video_url: str | None = None
    failed: bool = False
    status: str | None = None


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    interval_seconds: float = 5.0
    max_attempts: int = 60

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            interval_seconds=settings.video_poll_interval_seconds,
            max_attempts=settings.video_poll_max_attempts,
        )


class VideoGenerator(Protocol):
    """Asynchronous text-to-video service."""

    async def submit(self, request: VideoRequest) -> SubmitResult:
        """Start a generation job."""

    async def poll_status(self, job_id: str) -> PollResult:
        """Fetch the current state of a generation job."""


def _first_string(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if value is not None and str(value).strip():
            return str(value)
    return None


def parse_submit_response(payload: dict[str, Any]) -> SubmitResult:
    """Map a provider generate response onto a submit result."""
    video_url = _first_string(payload, "video_url", "url")
    job_id = _first_string(payload, "id", "video_id", "generation_id")
    if not video_url and not job_id:
        raise VideoGenerationError("Video provider response has neither a video URL nor a job id")
    return SubmitResult(video_url=video_url, job_id=job_id)


def parse_status_response(payload: dict[str, Any]) -> PollResult:
    """Map a provider status response onto a poll result."""
    status = _first_string(payload, "status")
    video_url = _first_string(payload, "video_url", "url")
    if video_url:
        return PollResult(video_url=video_url, status=status or "completed")
    failed = (status or "").strip().lower() in _FAILED_STATUSES
    return PollResult(failed=failed, status=status)


class VideogenApiClient:
    """videogenapi.com client over a shared `httpx.AsyncClient`."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://videogenapi.com/api/v1",
        timeout_seconds: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise VideoGenerationError("VIDEOGEN_API_KEY is not configured")
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise VideoGenerationError(f"Video provider request failed: {exc}") from exc
        if response.status_code >= 400:
            detail = response.text[:500]
            raise VideoGenerationError(
                f"Video provider returned HTTP {response.status_code}: {detail}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise VideoGenerationError("Video provider returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise VideoGenerationError("Video provider returned an unexpected body")
        return payload

    async def submit(self, request: VideoRequest) -> SubmitResult:
        payload = await self._request("POST", "/generate", json=request.to_payload())
        result = parse_submit_response(payload)
        logger.info(
            "video_generation.submitted model=%s job_id=%s immediate=%s",
            request.model,
            result.job_id,
            bool(result.video_url),
        )
        return result

    async def poll_status(self, job_id: str) -> PollResult:
        payload = await self._request("GET", f"/status/{job_id}")
        return parse_status_response(payload)


def build_video_generator(settings: "Settings", http_client: httpx.AsyncClient | None = None) -> VideogenApiClient:
    missing = settings.missing_video_fields()
    if missing:
        raise VideoGenerationError(f"Missing required video generation configuration: {', '.join(missing)}")
    return VideogenApiClient(
        api_key=settings.videogen_api_key,
        base_url=settings.videogen_base_url,
        timeout_seconds=settings.videogen_request_timeout_seconds,
        http_client=http_client,
    )


async def await_completion(
    generator: VideoGenerator,
    job_id: str,
    policy: RetryPolicy,
    *,
    cancel_token: "CancelToken | None" = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> str:
    """Poll `job_id` until it yields a video URL.

    Transient poll errors consume an attempt and polling continues. A provider
    reported failure raises `VideoGenerationError`; running out of attempts
    raises `PollTimeoutError`.
    """
    if sleep is None:
        sleep = cancel_token.sleep if cancel_token is not None else asyncio.sleep
    for attempt in range(1, policy.max_attempts + 1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        try:
            result = await generator.poll_status(job_id)
        except AdapterCallError as exc:
            logger.warning("video_generation.poll.error job_id=%s attempt=%s error=%s", job_id, attempt, exc)
        else:
            if result.video_url:
                return result.video_url
            if result.failed:
                raise VideoGenerationError(f"Video job {job_id} failed with status {result.status}")
        if attempt < policy.max_attempts:
            await sleep(policy.interval_seconds)
    raise PollTimeoutError(f"Video job {job_id} did not finish after {policy.max_attempts} attempts")
