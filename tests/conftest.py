from datetime import datetime, timedelta, timezone

import pytest

from retainly.application.scheduling.engine import ScheduleEngine
from retainly.application.scheduling.service import ReviewService
from retainly.domain.scheduling.models import ParameterSet
from retainly.infrastructure.adapters.memory_store import InMemoryStore

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for utc_now()."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float = 0, hours: float = 0) -> None:
        self.now += timedelta(days=days, hours=hours)


@pytest.fixture
def engine():
    return ScheduleEngine()


@pytest.fixture
def weights():
    return ParameterSet.default().weights


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def service(store, clock):
    return ReviewService(items=store, reviews=store, categories=store, settings=store, clock=clock)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files from the developer's machine
    monkeypatch.setenv("HOME", str(home))
    for var in ("RETAINLY_DB_PATH", "RETAINLY_BACKEND", "RETAINLY_DESIRED_RETENTION"):
        monkeypatch.delenv(var, raising=False)
    return home
