"""Unit tests for TriggerScheduler."""

import queue
from datetime import datetime, timedelta, timezone

import pytest

from modules.reminders.errors import (
    DuplicateTriggerError,
    InvalidScheduleError,
    TriggerNotFoundError,
)
from modules.reminders.scheduler import TriggerScheduler

pytestmark = pytest.mark.unit

UTC = timezone.utc


@pytest.fixture
def scheduler(clock):
    return TriggerScheduler(clock=clock)


class TestAdd:
    def test_computes_next_fire_at(self, scheduler, trigger_factory):
        stored = scheduler.add(trigger_factory())
        assert stored.next_fire_at == datetime(2024, 1, 15, 10, 1, tzinfo=UTC)
        assert stored.active

    def test_keeps_future_next_fire_at(self, scheduler, trigger_factory):
        future = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
        stored = scheduler.add(trigger_factory(next_fire_at=future))
        assert stored.next_fire_at == future

    def test_recomputes_past_next_fire_at(self, scheduler, trigger_factory):
        past = datetime(2024, 1, 1, tzinfo=UTC)
        stored = scheduler.add(trigger_factory(next_fire_at=past))
        assert stored.next_fire_at == datetime(2024, 1, 15, 10, 1, tzinfo=UTC)

    def test_rejects_invalid_expression(self, scheduler, trigger_factory):
        with pytest.raises(InvalidScheduleError):
            scheduler.add(trigger_factory(schedule_expression="every minute"))
        assert scheduler.triggers() == []

    def test_rejects_duplicate_id(self, scheduler, trigger_factory):
        scheduler.add(trigger_factory())
        with pytest.raises(DuplicateTriggerError):
            scheduler.add(trigger_factory())

    def test_returned_copy_is_detached(self, scheduler, trigger_factory):
        stored = scheduler.add(trigger_factory())
        stored.next_fire_at = None
        assert scheduler.get("trigger-1").next_fire_at is not None


class TestTick:
    def test_emits_due_event_and_advances(self, scheduler, trigger_factory, clock):
        scheduler.add(trigger_factory())
        now = clock.advance(minutes=1)

        events = scheduler.tick(now)

        assert len(events) == 1
        assert events[0].fired_at == datetime(2024, 1, 15, 10, 1, tzinfo=UTC)
        assert scheduler.get("trigger-1").next_fire_at == datetime(
            2024, 1, 15, 10, 2, tzinfo=UTC
        )
        assert scheduler.due_events.get_nowait() == events[0]

    def test_nothing_due(self, scheduler, trigger_factory, clock):
        scheduler.add(trigger_factory())
        assert scheduler.tick(clock.advance(seconds=30)) == []
        with pytest.raises(queue.Empty):
            scheduler.due_events.get_nowait()

    def test_events_in_ascending_trigger_id_order(self, scheduler, trigger_factory, clock):
        for trigger_id in ["c", "a", "b"]:
            scheduler.add(trigger_factory(trigger_id=trigger_id))

        events = scheduler.tick(clock.advance(minutes=1))

        assert [e.trigger.id for e in events] == ["a", "b", "c"]

    def test_clock_jump_coalesces_missed_fires(self, scheduler, trigger_factory, clock):
        """A long gap produces one event, and the next fire is after now."""
        scheduler.add(trigger_factory())
        now = clock.advance(hours=3, seconds=30)

        events = scheduler.tick(now)

        assert len(events) == 1
        assert events[0].fired_at == datetime(2024, 1, 15, 10, 1, tzinfo=UTC)
        next_fire = scheduler.get("trigger-1").next_fire_at
        assert now < next_fire <= now + timedelta(minutes=1)

    def test_fired_at_not_after_now(self, scheduler, trigger_factory, clock):
        scheduler.add(trigger_factory())
        for _ in range(5):
            now = clock.advance(seconds=45)
            for event in scheduler.tick(now):
                assert event.fired_at <= now

    def test_next_fire_strictly_increases(self, scheduler, trigger_factory, clock):
        scheduler.add(trigger_factory(schedule_expression="*/20 * * * * *"))
        previous = scheduler.get("trigger-1").next_fire_at
        for _ in range(6):
            scheduler.tick(clock.advance(seconds=20))
            current = scheduler.get("trigger-1").next_fire_at
            assert current > previous
            previous = current


class TestLifecycle:
    def test_remove_stops_future_fires(self, scheduler, trigger_factory, clock):
        scheduler.add(trigger_factory())
        removed = scheduler.remove("trigger-1")

        assert removed.active is False
        assert scheduler.tick(clock.advance(minutes=5)) == []

    def test_remove_unknown(self, scheduler):
        with pytest.raises(TriggerNotFoundError):
            scheduler.remove("missing")

    def test_pause_and_resume(self, scheduler, trigger_factory, clock):
        scheduler.add(trigger_factory())
        scheduler.pause("trigger-1")
        assert scheduler.tick(clock.advance(minutes=10)) == []

        resumed = scheduler.resume("trigger-1")

        assert resumed.paused is False
        assert resumed.next_fire_at == datetime(2024, 1, 15, 10, 11, tzinfo=UTC)

    def test_get_unknown(self, scheduler):
        with pytest.raises(TriggerNotFoundError):
            scheduler.get("missing")
