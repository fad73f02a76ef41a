"""Scheduled cleanup of stale merge working directories."""

import logging
import shutil
import time
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None
MERGE_WORK_DIR = "merges"
CLEANUP_INTERVAL_HOURS = 6


def _remove_path(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


def cleanup_stale_merges(temp_dir: str, max_age_hours: int = 24) -> list[str]:
    """Delete merge working directories older than max_age_hours based on mtime.

    Merges remove their own directory when they finish; anything older than the
    cutoff was left behind by a process that died mid-merge.
    """
    base = Path(temp_dir) / MERGE_WORK_DIR
    if not base.exists():
        return []
    cutoff = time.time() - (max_age_hours * 3600)
    removed: list[str] = []
    for item in base.iterdir():
        try:
            if item.stat().st_mtime >= cutoff:
                continue
            _remove_path(item)
        except OSError as e:
            logger.warning("cleanup.merge_dir_failed path=%s error=%s", item, e)
            continue
        removed.append(item.name)
        logger.info("cleanup.merge_dir_removed name=%s", item.name)
    return removed


def setup_scheduler(temp_dir: str, max_age_hours: int = 24) -> BackgroundScheduler:
    """Create and start APScheduler with a periodic merge-directory sweep."""
    global _scheduler
    _scheduler = BackgroundScheduler()
    _scheduler.add_job(
        cleanup_stale_merges,
        "interval",
        hours=CLEANUP_INTERVAL_HOURS,
        args=[temp_dir, max_age_hours],
        id="cleanup_stale_merges",
    )
    _scheduler.start()
    logger.info("Scheduler started: merge cleanup every %s hours", CLEANUP_INTERVAL_HOURS)
    return _scheduler


def shutdown_scheduler() -> None:
    """Shut down the scheduler cleanly."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
