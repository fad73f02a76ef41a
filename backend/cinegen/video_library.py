"""Ad-hoc text-to-video generations kept outside of any film."""

from __future__ import annotations

import logging

import httpx

from cinegen.film_store import FilmStore, NotFoundError
from cinegen.records import GeneratedVideo, new_id
from cinegen.stages import GeneratedVideoStatus
from cinegen.storage import MediaStore, MediaStoreError, build_library_key, mirror_remote_video
from cinegen.video_generation import VideoGenerationError, VideoGenerator, VideoRequest

logger = logging.getLogger(__name__)


class VideoLibrary:
    def __init__(
        self,
        *,
        store: FilmStore,
        video_generator: VideoGenerator | None,
        media_store: MediaStore | None,
        http_client: httpx.AsyncClient | None = None,
        url_ttl_seconds: int | None = None,
    ) -> None:
        self._store = store
        self._video_generator = video_generator
        self._media_store = media_store
        self._http_client = http_client
        self._url_ttl_seconds = url_ttl_seconds

    def _generator(self) -> VideoGenerator:
        if self._video_generator is None:
            raise VideoGenerationError("Video generation is not configured")
        return self._video_generator

    def get(self, video_id: str) -> GeneratedVideo:
        video = self._store.get_generated_video(video_id)
        if video is None:
            raise NotFoundError(f"Video '{video_id}' not found")
        return video

    def list_videos(self) -> list[GeneratedVideo]:
        return self._store.list_generated_videos()

    async def create(
        self,
        prompt: str,
        *,
        duration: int = 10,
        resolution: str = "1080p",
        model: str = "kling_21",
        aspect_ratio: str = "16:9",
        image_url: str | None = None,
        seed: int | None = None,
    ) -> GeneratedVideo:
        """Persist a `processing` record, then submit it to the provider."""
        generator = self._generator()
        video = self._store.save_generated_video(
            GeneratedVideo(
                id=new_id(),
                prompt=prompt,
                duration=duration,
                resolution=resolution,
                model=model,
                aspect_ratio=aspect_ratio,
            )
        )
        request = VideoRequest(
            prompt=prompt,
            model=model,
            duration_seconds=duration,
            resolution=resolution,
            aspect_ratio=aspect_ratio,
            image_url=image_url,
            seed=seed,
        )
        try:
            submitted = await generator.submit(request)
        except Exception:
            video.status = GeneratedVideoStatus.FAILED
            self._store.save_generated_video(video)
            raise

        video.external_id = submitted.job_id
        if submitted.video_url:
            await self._complete(video, submitted.video_url)
        logger.info("video_library.created video_id=%s status=%s", video.id, video.status.value)
        return self._store.save_generated_video(video)

    async def check_status(self, video_id: str) -> GeneratedVideo:
        """Poll the provider once for a still-processing video."""
        video = self.get(video_id)
        if video.status != GeneratedVideoStatus.PROCESSING or not video.external_id:
            return video
        result = await self._generator().poll_status(video.external_id)
        if result.video_url:
            await self._complete(video, result.video_url)
        elif result.failed:
            video.status = GeneratedVideoStatus.FAILED
        else:
            return video
        logger.info("video_library.status video_id=%s status=%s", video.id, video.status.value)
        return self._store.save_generated_video(video)

    def download_url(self, video_id: str) -> str:
        video = self.get(video_id)
        if video.object_key and self._media_store is not None:
            return self._media_store.sign_read_url(video.object_key, expires_in=self._url_ttl_seconds)
        if video.video_url:
            return video.video_url
        raise NotFoundError(f"Video '{video_id}' has no downloadable file yet")

    async def _complete(self, video: GeneratedVideo, video_url: str) -> None:
        video.video_url = video_url
        video.status = GeneratedVideoStatus.COMPLETED
        if self._media_store is None:
            return
        try:
            video.object_key = await mirror_remote_video(
                self._media_store,
                video_url,
                build_library_key(video.id),
                http_client=self._http_client,
            )
        except MediaStoreError as exc:
            logger.warning("video_library.mirror_failed video_id=%s error=%s", video.id, exc)
