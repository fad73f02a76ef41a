"""CLI entrypoint for running one film generation out of process."""

from __future__ import annotations

import argparse
import asyncio
import logging

from cinegen.config import Settings
from cinegen.events import EventRelay
from cinegen.film_store import build_film_store
from cinegen.media_merge import MergeEngine
from cinegen.pipeline import FilmPipeline
from cinegen.stages import FilmStage
from cinegen.storage import R2MediaStore
from cinegen.text_generation import build_text_generator
from cinegen.video_generation import build_video_generator

logger = logging.getLogger(__name__)


def build_worker_pipeline(settings: Settings) -> FilmPipeline:
    if not settings.database_dsn:
        raise SystemExit("DATABASE_DSN is required to run the film worker")
    store = build_film_store(dsn=settings.database_dsn)
    store.ensure_schema()
    media_store = None
    if not settings.missing_r2_fields():
        media_store = R2MediaStore(
            account_id=settings.r2_account_id,
            bucket=settings.r2_bucket,
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            default_url_ttl_seconds=settings.r2_url_ttl_seconds,
        )
    return FilmPipeline(
        store=store,
        text_generator=build_text_generator(settings, model_id=settings.story_model_id),
        scene_text_generator=build_text_generator(settings, model_id=settings.scene_model_id),
        video_generator=build_video_generator(settings),
        media_store=media_store,
        merge_engine=MergeEngine(settings, media_store),
        events=EventRelay(queue_size=settings.event_queue_size),
        settings=settings,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate one film end to end.")
    parser.add_argument("film_id", help="id of an existing film in a restartable stage")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    settings = Settings.from_env()
    pipeline = build_worker_pipeline(settings)
    pipeline.claim(args.film_id)
    film = asyncio.run(pipeline.run(args.film_id))
    logger.info("worker.finished film_id=%s stage=%s", film.id, film.generation_stage.value)
    return 0 if film.generation_stage == FilmStage.COMPLETED else 1


if __name__ == "__main__":
    raise SystemExit(main())
