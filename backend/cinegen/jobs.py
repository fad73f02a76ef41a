"""In-memory registry of live film generation runs."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime


class PipelineCancelledError(RuntimeError):
    """Raised inside a run when its cancel token has been triggered."""


class CancelToken:
    """Cooperative cancellation flag checked at pipeline suspension points."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError("cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, waking early and raising if cancelled."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return
        raise PipelineCancelledError("cancelled")


@dataclass(slots=True)
class RunHandle:
    film_id: str
    token: CancelToken
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


runs: dict[str, RunHandle] = {}


def register_run(film_id: str) -> RunHandle:
    """Register a live run for a film and return its handle."""
    handle = RunHandle(film_id=film_id, token=CancelToken())
    runs[film_id] = handle
    return handle


def get_run(film_id: str) -> RunHandle | None:
    """Return the live run handle or None if no run is registered."""
    return runs.get(film_id)


def is_running(film_id: str) -> bool:
    return film_id in runs


def request_cancel(film_id: str) -> bool:
    """Trigger cancellation for a live run. Returns False when nothing is running."""
    handle = runs.get(film_id)
    if handle is None:
        return False
    handle.token.cancel()
    return True


def finish_run(film_id: str, handle: RunHandle | None = None) -> None:
    """Drop a run from the registry, only if it is still the registered handle."""
    current = runs.get(film_id)
    if current is None:
        return
    if handle is not None and current is not handle:
        return
    runs.pop(film_id, None)
