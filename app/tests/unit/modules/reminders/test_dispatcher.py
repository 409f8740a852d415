"""Unit tests for ChannelDispatcher."""

import random
import threading
from unittest.mock import MagicMock

import pytest

from infrastructure.resilience.retry import RetryConfig
from modules.reminders.channels import InAppChannel, NotificationChannel
from modules.reminders.dispatcher import (
    DELIVERED_EVENT,
    FAILED_EVENT,
    ChannelDispatcher,
)
from modules.reminders.models import (
    Channel,
    ChannelError,
    ChannelResponse,
    OccurrenceState,
    StatsView,
)
from modules.reminders.retry import RetryCoordinator
from modules.reminders.sources import InMemoryAccountSettings, InMemoryTemplateSource
from modules.reminders.statistics import StatisticsAggregator
from modules.reminders.storage import InMemoryDeliveryStore

pytestmark = pytest.mark.unit


class ScriptedChannel(NotificationChannel):
    """Adapter that replays a list of outcomes or exceptions, one per send."""

    def __init__(self, channel, script, clock=None):
        super().__init__(clock)
        self.channel = channel
        self.script = list(script)
        self.sent = []

    def resolve_recipient(self, recipient):
        raise NotImplementedError

    def _deliver(self, message, address):
        raise NotImplementedError

    def send(self, message):
        self.sent.append(message)
        step = self.script.pop(0) if self.script else None
        if isinstance(step, Exception):
            raise step
        if step is None:
            return ChannelResponse(delivered_at=self._clock(), provider_message_id="ok")
        return step


class BlockingChannel(NotificationChannel):
    channel = Channel.PUSH

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def resolve_recipient(self, recipient):
        raise NotImplementedError

    def _deliver(self, message, address):
        raise NotImplementedError

    def send(self, message):
        self.entered.set()
        self.release.wait(5)
        return ChannelResponse(delivered_at=self._clock())


class DispatchHarness:
    def __init__(
        self, clock, publish, adapters=None, send_timeout_seconds=2.0, max_workers=2
    ):
        self.clock = clock
        self.in_app = InAppChannel(clock=clock)
        self.adapters = {Channel.IN_APP: self.in_app}
        self.adapters.update(adapters or {})
        self.account_settings = InMemoryAccountSettings()
        self.templates = InMemoryTemplateSource()
        self.store = InMemoryDeliveryStore()
        self.statistics = StatisticsAggregator(self.store, clock=clock)
        self.retry = RetryCoordinator(
            RetryConfig(max_attempts=3), clock=clock, rng=random.Random(1)
        )
        self.dispatcher = ChannelDispatcher(
            self.adapters,
            self.account_settings,
            self.templates,
            self.store,
            self.statistics,
            self.retry,
            send_timeout_seconds=send_timeout_seconds,
            max_workers=max_workers,
            clock=clock,
            publish=publish,
        )


@pytest.fixture
def harness(clock, publish, template_factory):
    h = DispatchHarness(clock, publish)
    h.templates.put(template_factory())
    yield h
    h.dispatcher.shutdown(wait=False)


class TestSuccessfulDispatch:
    def test_in_app_delivery(self, harness, occurrence_factory, published, clock):
        occurrence = occurrence_factory()

        attempt = harness.dispatcher.dispatch(occurrence)

        assert attempt.succeeded
        assert attempt.attempt_number == 1
        assert attempt.started_at == clock()
        assert occurrence.state == OccurrenceState.SUCCEEDED
        assert occurrence.attempt_number == 1

        inbox = harness.in_app.inbox("account-1")
        assert [(n.title, n.body) for n in inbox] == [("Hi Ana", "stand up")]

        assert harness.store.attempts() == [attempt]
        template = harness.statistics.get_template_stats("template-1")
        assert template.sent_count == 1
        assert template.last_sent_at == clock()
        assert harness.statistics.get_trigger_stats("trigger-1").fired_count == 1

        assert [e.event_type for e in published] == [DELIVERED_EVENT]
        assert published[0].metadata["occurrence_id"] == occurrence.id

    def test_uses_configured_address(
        self, clock, publish, template_factory, occurrence_factory, channel_config_factory
    ):
        sms = ScriptedChannel(Channel.SMS, [])
        h = DispatchHarness(clock, publish, adapters={Channel.SMS: sms})
        h.templates.put(template_factory())
        h.account_settings.put_channel_config(
            channel_config_factory(channel=Channel.SMS, address="+15555550100")
        )

        attempt = h.dispatcher.dispatch(occurrence_factory(channel=Channel.SMS))

        assert attempt.succeeded
        assert sms.sent[0].recipient == "+15555550100"
        assert sms.sent[0].content.text == "Reminder: stand up"
        h.dispatcher.shutdown()


class TestNonRetryableFailures:
    def test_channel_disabled_by_default(self, harness, occurrence_factory, published):
        occurrence = occurrence_factory(channel=Channel.EMAIL)

        attempt = harness.dispatcher.dispatch(occurrence)

        assert attempt.outcome.code == "CHANNEL_DISABLED"
        assert occurrence.state == OccurrenceState.FAILED_TERMINAL
        assert harness.statistics.get_group_stats("group-1").failed_count == 1
        assert [e.event_type for e in published] == [FAILED_EVENT]
        assert published[0].message == (
            "reminder trigger-1 failed to deliver via channel email after 1 "
            f"attempts: {attempt.outcome.message}"
        )

    def test_template_not_found(self, harness, occurrence_factory):
        attempt = harness.dispatcher.dispatch(occurrence_factory(template_id="missing"))
        assert attempt.outcome.code == "TEMPLATE_NOT_FOUND"
        assert not attempt.retryable

    def test_missing_variable(self, harness, occurrence_factory):
        occurrence = occurrence_factory(variables={"name": "Ana"})

        attempt = harness.dispatcher.dispatch(occurrence)

        assert attempt.outcome.code == "MISSING_VARIABLE"
        assert "task" in attempt.outcome.message
        assert occurrence.state == OccurrenceState.FAILED_TERMINAL
        assert not harness.retry.has_pending(occurrence.id)
        assert harness.in_app.inbox("account-1") == []

    def test_template_without_channel_content(
        self, harness, occurrence_factory, template_factory
    ):
        harness.templates.put(
            template_factory(template_id="email-only", channels=[Channel.EMAIL])
        )

        attempt = harness.dispatcher.dispatch(
            occurrence_factory(template_id="email-only")
        )

        assert attempt.outcome.code == "UNSUPPORTED_CHANNEL"

    def test_missing_address(self, harness, occurrence_factory, channel_config_factory):
        harness.account_settings.put_channel_config(channel_config_factory(address=None))

        attempt = harness.dispatcher.dispatch(occurrence_factory())

        assert attempt.outcome.code == "NO_RECIPIENT"

    def test_missing_adapter(self, harness, occurrence_factory, channel_config_factory):
        harness.account_settings.put_channel_config(
            channel_config_factory(channel=Channel.PUSH, address="device-token")
        )

        attempt = harness.dispatcher.dispatch(occurrence_factory(channel=Channel.PUSH))

        assert attempt.outcome.code == "UNSUPPORTED_CHANNEL"
        assert not attempt.retryable


class TestRetryableFailures:
    def test_rate_limited_schedules_retry(
        self, harness, occurrence_factory, channel_config_factory, clock, published
    ):
        harness.account_settings.put_channel_config(
            channel_config_factory(max_per_window=1, window_duration_seconds=60)
        )
        harness.dispatcher.dispatch(occurrence_factory())
        second = occurrence_factory()

        attempt = harness.dispatcher.dispatch(second)

        assert attempt.outcome.code == "RATE_LIMITED"
        assert attempt.retryable
        assert attempt.outcome.retry_after is not None
        assert attempt.next_retry_at >= attempt.outcome.retry_after
        assert second.state == OccurrenceState.RETRY_PENDING
        assert harness.retry.has_pending(second.id)
        assert harness.statistics.get_template_stats("template-1").retried_count == 1
        assert [e.event_type for e in published] == [DELIVERED_EVENT]

    def test_adapter_exception_is_retryable(
        self, clock, publish, template_factory, occurrence_factory, channel_config_factory
    ):
        sms = ScriptedChannel(Channel.SMS, [RuntimeError("socket closed")])
        h = DispatchHarness(clock, publish, adapters={Channel.SMS: sms})
        h.templates.put(template_factory())
        h.account_settings.put_channel_config(
            channel_config_factory(channel=Channel.SMS, address="+15555550100")
        )
        occurrence = occurrence_factory(channel=Channel.SMS)

        attempt = h.dispatcher.dispatch(occurrence)

        assert attempt.outcome.code == "ADAPTER_EXCEPTION"
        assert "socket closed" in attempt.outcome.message
        assert occurrence.state == OccurrenceState.RETRY_PENDING
        h.dispatcher.shutdown()

    def test_slow_adapter_times_out(
        self, clock, publish, template_factory, occurrence_factory, channel_config_factory
    ):
        push = BlockingChannel()
        h = DispatchHarness(
            clock, publish, adapters={Channel.PUSH: push}, send_timeout_seconds=0.05
        )
        h.templates.put(template_factory())
        h.account_settings.put_channel_config(
            channel_config_factory(channel=Channel.PUSH, address="device-token")
        )

        try:
            attempt = h.dispatcher.dispatch(occurrence_factory(channel=Channel.PUSH))
        finally:
            push.release.set()
            h.dispatcher.shutdown()

        assert attempt.outcome.code == "TIMEOUT"
        assert attempt.retryable

    def test_exhausted_retries_fail_terminally(
        self, harness, occurrence_factory, channel_config_factory, published
    ):
        harness.account_settings.put_channel_config(
            channel_config_factory(max_per_window=1, window_duration_seconds=3600)
        )
        harness.dispatcher.dispatch(occurrence_factory())
        occurrence = occurrence_factory()

        for _ in range(3):
            attempt = harness.dispatcher.dispatch(occurrence)

        assert occurrence.attempt_number == 3
        assert occurrence.state == OccurrenceState.FAILED_TERMINAL
        assert [a.attempt_number for a in harness.store.attempts_for(occurrence.id)] == [
            1,
            2,
            3,
        ]
        stats = harness.statistics.get_template_stats("template-1")
        assert (stats.sent_count, stats.retried_count, stats.failed_count) == (1, 2, 1)
        assert published[-1].event_type == FAILED_EVENT
        assert "after 3 attempts" in published[-1].message
        assert attempt.outcome.code == "RATE_LIMITED"

    def test_busy_send_pool_does_not_eat_the_send_timeout(
        self, clock, publish, template_factory, occurrence_factory, channel_config_factory
    ):
        push = BlockingChannel()
        h = DispatchHarness(
            clock,
            publish,
            adapters={Channel.PUSH: push},
            send_timeout_seconds=0.05,
            max_workers=1,
        )
        h.templates.put(template_factory())
        h.account_settings.put_channel_config(
            channel_config_factory(channel=Channel.PUSH, address="device-token")
        )

        try:
            timed_out = h.dispatcher.dispatch(occurrence_factory(channel=Channel.PUSH))
            assert push.entered.is_set()
            occurrence = occurrence_factory()
            busy = h.dispatcher.dispatch(occurrence)
        finally:
            push.release.set()
            h.dispatcher.shutdown()

        assert timed_out.outcome.code == "TIMEOUT"
        assert busy.outcome.code == "CHANNEL_BUSY"
        assert busy.retryable
        assert occurrence.state == OccurrenceState.RETRY_PENDING
        assert h.in_app.inbox("account-1") == []


class TestUnavailableSettings:
    def test_template_lookup_error_is_retryable(
        self, harness, occurrence_factory, monkeypatch, published
    ):
        monkeypatch.setattr(
            harness.templates,
            "get_template",
            MagicMock(side_effect=ConnectionError("template store unreachable")),
        )
        occurrence = occurrence_factory()

        attempt = harness.dispatcher.dispatch(occurrence)

        assert attempt.outcome.code == "SETTINGS_UNAVAILABLE"
        assert "template store unreachable" in attempt.outcome.message
        assert attempt.retryable
        assert occurrence.state == OccurrenceState.RETRY_PENDING
        assert harness.retry.has_pending(occurrence.id)
        assert harness.store.attempts() == [attempt]
        assert harness.statistics.get_template_stats("template-1").retried_count == 1
        assert published == []

    def test_channel_settings_lookup_error_is_retryable(
        self, harness, occurrence_factory, monkeypatch
    ):
        monkeypatch.setattr(
            harness.account_settings,
            "get_channel_config",
            MagicMock(side_effect=TimeoutError("settings read timed out")),
        )
        occurrence = occurrence_factory()

        attempt = harness.dispatcher.dispatch(occurrence)

        assert attempt.outcome.code == "SETTINGS_UNAVAILABLE"
        assert attempt.retryable
        assert occurrence.state == OccurrenceState.RETRY_PENDING
        assert harness.in_app.inbox("account-1") == []

    def test_retry_after_lookup_recovers(self, harness, occurrence_factory, monkeypatch):
        lookup = MagicMock(side_effect=ConnectionError("down"))
        original = harness.templates.get_template
        monkeypatch.setattr(harness.templates, "get_template", lookup)
        occurrence = occurrence_factory()
        harness.dispatcher.dispatch(occurrence)

        lookup.side_effect = original
        attempt = harness.dispatcher.dispatch(occurrence)

        assert attempt.succeeded
        assert attempt.attempt_number == 2
        assert occurrence.state == OccurrenceState.SUCCEEDED

    def test_caller_failure_is_recorded_without_sending(self, harness, occurrence_factory):
        occurrence = occurrence_factory()
        failure = ChannelError(
            code="SETTINGS_UNAVAILABLE", message="quiet hours lookup failed", retryable=True
        )

        attempt = harness.dispatcher.dispatch(occurrence, failure)

        assert attempt.outcome == failure
        assert occurrence.state == OccurrenceState.RETRY_PENDING
        assert harness.in_app.inbox("account-1") == []


def test_every_dispatch_appends_one_attempt(harness, occurrence_factory):
    for channel in (Channel.IN_APP, Channel.EMAIL, Channel.SMS):
        harness.dispatcher.dispatch(occurrence_factory(channel=channel))

    assert len(harness.store.attempts()) == 3
    assert harness.store.stats_row(StatsView.TRIGGER, "trigger-1") == {
        "fired_count": 1,
        "failed_count": 2,
    }
