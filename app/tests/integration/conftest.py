"""Fixtures wiring a real ReminderEngine with in-memory collaborators."""

import random

import pytest

from modules.reminders import Channel, ReminderEngine


@pytest.fixture
def engine(settings, clock, publish, template_factory):
    """Engine on the fake clock with the default template loaded."""
    engine = ReminderEngine(settings, clock=clock, rng=random.Random(7), publish=publish)
    engine.templates.put(template_factory())
    yield engine
    engine.close()


@pytest.fixture
def inbox(engine):
    """In-app notifications delivered to a recipient."""

    def _inbox(recipient="account-1"):
        return engine.adapters[Channel.IN_APP].inbox(recipient)

    return _inbox
