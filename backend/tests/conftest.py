"""Shared fixtures for the film generation test suite."""

import pytest

from cinegen import jobs
from cinegen.events import EventRelay
from cinegen.film_store import InMemoryFilmStore
from cinegen.records import Film, FilmConfig
from cinegen.stages import FilmMode
from fakes import FakeMediaStore, FakeMergeEngine, make_settings


# ---------------------------------------------------------------------------
# 1.1 — Autouse fixture: clear the live run registry before each test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_runs():
    """Ensure every test starts with no registered generation runs."""
    jobs.runs.clear()
    yield
    jobs.runs.clear()


# ---------------------------------------------------------------------------
# 1.2 — Settings and in-memory collaborators
# ---------------------------------------------------------------------------

@pytest.fixture()
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture()
def store():
    return InMemoryFilmStore()


@pytest.fixture()
def relay():
    return EventRelay(queue_size=100)


@pytest.fixture()
def media_store():
    return FakeMediaStore()


@pytest.fixture()
def merge_engine():
    return FakeMergeEngine()


# ---------------------------------------------------------------------------
# 1.3 — Film factory
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_film(store):
    """Factory fixture that creates and stores a film.

    Parameters
    ----------
    title : str
        Film title.
    mode : FilmMode
        Freeform or structured.
    chapter_count : int
        Chapter count for freeform films.
    """

    def _factory(title: str = "The Lighthouse Map", mode: FilmMode = FilmMode.FREEFORM, chapter_count: int = 2):
        config = FilmConfig(mode=mode, chapter_count=chapter_count)
        return store.create_film(Film.create(title, config))

    return _factory
