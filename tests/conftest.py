"""Shared fixtures for break history tests."""

import pytest

from break_history.config import AppSettings, HistorySettings
from break_history.db import KeyValueStore
from break_history.history import EventLog
from break_history.models import DAY_MS

NOW = 100 * DAY_MS


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class SettingsHolder:
    """Mutable stand-in for the settings store."""

    def __init__(self) -> None:
        self.value = AppSettings()

    def __call__(self) -> AppSettings:
        return self.value

    def disable(self) -> None:
        self.value = AppSettings(history_enabled=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return SettingsHolder()


@pytest.fixture
def store():
    kv = KeyValueStore.open_in_memory()
    yield kv
    kv.close()


@pytest.fixture
def event_log(store, settings, clock):
    log = EventLog(store, settings, config=HistorySettings(), clock=clock)
    yield log
    log.close()
