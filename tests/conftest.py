"""
Pytest fixtures for instinct store tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from instincts.config import get_settings
from instincts.patterns import PatternStore

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock handed to PatternStore."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, days: float) -> None:
        self.current += timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "instincts" / "mobile-instincts.json"


@pytest.fixture
def store(store_path, clock):
    return PatternStore(store_path, now=clock)


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    """Isolate settings from the developer's environment and .env file."""
    for name in (
        "INSTINCTS_STORE_PATH",
        "INSTINCTS_STRICT_LOAD",
        "INSTINCTS_DECAY_DAYS",
        "INSTINCTS_HIGH_CONFIDENCE_THRESHOLD",
        "INSTINCTS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
