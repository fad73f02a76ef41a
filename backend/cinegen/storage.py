"""Media storage abstraction and Cloudflare R2 implementation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPE = "video/mp4"


class MediaStoreError(RuntimeError):
    """Base exception for media storage failures."""


class MediaStoreConfigError(MediaStoreError):
    """Raised when media storage configuration is missing or invalid."""


class MediaStore(Protocol):
    """Object storage interface used by the generation pipeline."""

    def put_bytes(self, object_key: str, data: bytes, content_type: str = VIDEO_CONTENT_TYPE) -> str:
        """Store bytes under a key and return the key."""

    def upload_file(self, file_path: str, object_key: str, content_type: str = VIDEO_CONTENT_TYPE) -> str:
        """Upload a local file under a key and return the key."""

    def delete_object(self, object_key: str) -> None:
        """Delete an object key."""

    def verify_object(self, object_key: str) -> bool:
        """Verify an object exists in storage."""

    def sign_read_url(self, object_key: str, expires_in: int | None = None) -> str:
        """Generate a signed read URL for an object key."""


def is_remote_url(handle: str) -> bool:
    return handle.startswith(("http://", "https://"))


def build_scene_key(film_id: str, chapter_number: int, frame_number: int) -> str:
    """Build the deterministic key for one scene clip."""
    return f"films/{film_id}/chapters/{chapter_number}/scenes/scene_{frame_number}.mp4"


def build_chapter_key(film_id: str, chapter_number: int) -> str:
    """Build the deterministic key for a merged chapter video."""
    return f"films/{film_id}/chapters/{chapter_number}/chapter.mp4"


def build_final_key(film_id: str) -> str:
    """Build the deterministic key for the final film video."""
    return f"films/{film_id}/final.mp4"


def build_library_key(video_id: str) -> str:
    """Build the deterministic key for an ad-hoc library video."""
    return f"videos/{video_id}.mp4"


def build_r2_endpoint(account_id: str) -> str:
    """Build the Cloudflare R2 S3-compatible endpoint URL."""
    return f"https://{account_id}.r2.cloudflarestorage.com"


def resolve_read_url(handle: str, media_store: MediaStore | None, expires_in: int | None = None) -> str:
    """Turn a stored handle into something a client can fetch.

    Provider URLs pass through unchanged; object keys are signed.
    """
    if is_remote_url(handle):
        return handle
    if media_store is None:
        raise MediaStoreConfigError(f"Cannot sign object key '{handle}' without a configured media store")
    return media_store.sign_read_url(handle, expires_in=expires_in)


@dataclass(slots=True)
class R2MediaStore:
    """Cloudflare R2 implementation of the MediaStore interface."""

    account_id: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    default_url_ttl_seconds: int = 3600
    s3_client: Any | None = None

    def __post_init__(self) -> None:
        missing = []
        if not self.account_id:
            missing.append("R2_ACCOUNT_ID")
        if not self.bucket:
            missing.append("R2_BUCKET")
        if not self.access_key_id:
            missing.append("R2_ACCESS_KEY_ID")
        if not self.secret_access_key:
            missing.append("R2_SECRET_ACCESS_KEY")
        if missing:
            fields = ", ".join(missing)
            raise MediaStoreConfigError(f"Missing required R2 configuration: {fields}")

        if self.default_url_ttl_seconds <= 0:
            raise MediaStoreConfigError("R2_URL_TTL_SECONDS must be greater than zero")

        if self.s3_client is None:
            self.s3_client = self._build_client()

    def _build_client(self) -> Any:
        import boto3

        return boto3.client(
            "s3",
            region_name="auto",
            endpoint_url=build_r2_endpoint(self.account_id),
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, object_key: str, data: bytes, content_type: str = VIDEO_CONTENT_TYPE) -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except Exception as exc:  # pragma: no cover - depends on external SDK
            raise MediaStoreError(f"Failed to upload object '{object_key}'") from exc
        return object_key

    def upload_file(self, file_path: str, object_key: str, content_type: str = VIDEO_CONTENT_TYPE) -> str:
        try:
            self.s3_client.upload_file(
                file_path,
                self.bucket,
                object_key,
                ExtraArgs={"ContentType": content_type},
            )
        except Exception as exc:  # pragma: no cover - depends on external SDK
            raise MediaStoreError(f"Failed to upload file '{file_path}' to '{object_key}'") from exc
        return object_key

    def delete_object(self, object_key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=object_key)
        except Exception as exc:  # pragma: no cover - depends on external SDK
            raise MediaStoreError(f"Failed to delete object '{object_key}'") from exc

    def verify_object(self, object_key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=object_key)
            return True
        except Exception:
            return False

    def sign_read_url(self, object_key: str, expires_in: int | None = None) -> str:
        ttl = expires_in or self.default_url_ttl_seconds
        if ttl <= 0:
            raise MediaStoreError("Signed URL expiration must be greater than zero")
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": object_key},
                ExpiresIn=ttl,
            )
        except Exception as exc:  # pragma: no cover - depends on external SDK
            raise MediaStoreError(f"Failed to generate signed URL for '{object_key}'") from exc


async def download_bytes(url: str, http_client: httpx.AsyncClient | None = None, timeout: float = 120.0) -> bytes:
    """Download a remote file and return raw bytes."""
    try:
        if http_client is not None:
            response = await http_client.get(url, follow_redirects=True)
            response.raise_for_status()
            return response.content
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as exc:
        raise MediaStoreError(f"Failed to download '{url}': {exc}") from exc


async def mirror_remote_video(
    media_store: MediaStore,
    video_url: str,
    object_key: str,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Copy a provider-hosted clip into the object store and return its key."""
    data = await download_bytes(video_url, http_client=http_client)
    stored_key = await asyncio.to_thread(media_store.put_bytes, object_key, data, VIDEO_CONTENT_TYPE)
    logger.info("storage.mirror.completed object_key=%s bytes=%s", stored_key, len(data))
    return stored_key
