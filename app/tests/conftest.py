"""Shared fixtures for the reminder engine test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.configuration import Settings
from infrastructure.events import clear_handlers
from infrastructure.services import get_engine, get_settings
from tests.factories.reminders import (
    make_channel_config,
    make_dnd_config,
    make_occurrence,
    make_template,
    make_trigger,
)


class FakeClock:
    """Deterministic clock; tests move time with ``advance`` or ``set``."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


@pytest.fixture
def clock():
    """Clock frozen at Monday 2024-01-15 10:00:00 UTC."""
    return FakeClock(datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def published():
    """Collects events handed to a ``publish`` callable."""
    return []


@pytest.fixture
def publish(published):
    return published.append


@pytest.fixture
def settings():
    """Settings with defaults, independent of the process environment."""
    return Settings(_env_file=None)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Keep cached providers and event handlers from leaking between tests."""
    get_settings.cache_clear()
    get_engine.cache_clear()
    clear_handlers()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()
    clear_handlers()


@pytest.fixture
def trigger_factory():
    return make_trigger


@pytest.fixture
def template_factory():
    return make_template


@pytest.fixture
def occurrence_factory():
    return make_occurrence


@pytest.fixture
def dnd_factory():
    return make_dnd_config


@pytest.fixture
def channel_config_factory():
    return make_channel_config
