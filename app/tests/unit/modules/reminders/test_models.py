"""Unit tests for reminder domain models and in-memory sources."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from modules.reminders.models import (
    Channel,
    ChannelError,
    ChannelResponse,
    DeliveryAttempt,
    DueEvent,
    EmailContent,
    InAppContent,
    OccurrenceState,
    PushContent,
    RateLimitPolicy,
    ReminderOccurrence,
)
from modules.reminders.sources import (
    InMemoryAccountSettings,
    InMemoryTemplateSource,
    default_channel_config,
)

pytestmark = pytest.mark.unit

UTC = timezone.utc


class TestReminderTrigger:
    def test_defaults_to_in_app(self, trigger_factory):
        trigger = trigger_factory(channels=None)
        assert trigger.channels == [Channel.IN_APP]

    def test_channels_deduplicated(self, trigger_factory):
        trigger = trigger_factory(channels=[Channel.EMAIL, Channel.SMS, Channel.EMAIL])
        assert trigger.channels == [Channel.EMAIL, Channel.SMS]

    def test_empty_channels_rejected(self, trigger_factory):
        with pytest.raises(ValidationError):
            trigger_factory(channels=[])

    def test_unknown_timezone_rejected(self, trigger_factory):
        with pytest.raises(ValidationError):
            trigger_factory(timezone_name="Mars/Olympus")

    def test_naive_next_fire_at_is_utc(self, trigger_factory):
        trigger = trigger_factory(next_fire_at=datetime(2024, 1, 15, 10, 0))
        assert trigger.next_fire_at.tzinfo == UTC


class TestNotificationTemplate:
    def test_contents_coerced_per_channel(self, template_factory):
        template = template_factory()
        assert isinstance(template.channel_contents[Channel.EMAIL], EmailContent)
        assert isinstance(template.channel_contents[Channel.PUSH], PushContent)
        assert isinstance(template.channel_contents[Channel.IN_APP], InAppContent)

    def test_wrong_shape_rejected(self, template_factory):
        with pytest.raises(ValidationError):
            template_factory(contents={Channel.EMAIL: {"text": "no subject"}})


class TestOccurrence:
    def test_from_event_copies_trigger_fields(self, trigger_factory):
        trigger = trigger_factory(channels=[Channel.EMAIL, Channel.SMS])
        fired_at = datetime(2024, 1, 15, 10, 1, tzinfo=UTC)

        occurrence = ReminderOccurrence.from_event(
            DueEvent(trigger=trigger, fired_at=fired_at), Channel.SMS
        )

        assert occurrence.trigger_id == trigger.id
        assert occurrence.channel == Channel.SMS
        assert occurrence.fired_at == fired_at
        assert occurrence.attempt_number == 0
        assert occurrence.state == OccurrenceState.SCHEDULED

    def test_terminal_states(self):
        assert OccurrenceState.SUCCEEDED.is_terminal
        assert OccurrenceState.FAILED_TERMINAL.is_terminal
        assert not OccurrenceState.RETRY_PENDING.is_terminal


class TestDeliveryAttempt:
    def test_success_and_failure_flags(self):
        started = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)
        ok = DeliveryAttempt(
            occurrence_id="o",
            trigger_id="t",
            channel=Channel.SMS,
            attempt_number=1,
            started_at=started,
            outcome=ChannelResponse(delivered_at=started),
        )
        failed = ok.model_copy(
            update={
                "outcome": ChannelError(code="TIMEOUT", message="slow", retryable=True)
            }
        )
        assert ok.succeeded and not ok.retryable
        assert not failed.succeeded and failed.retryable

    def test_attempt_number_starts_at_one(self):
        with pytest.raises(ValidationError):
            DeliveryAttempt(
                occurrence_id="o",
                trigger_id="t",
                channel=Channel.SMS,
                attempt_number=0,
                started_at=datetime(2024, 1, 15, tzinfo=UTC),
                outcome=ChannelResponse(delivered_at=datetime(2024, 1, 15, tzinfo=UTC)),
            )

    def test_rate_limit_policy_must_be_positive(self):
        with pytest.raises(ValidationError):
            RateLimitPolicy(max_per_window=0, window_duration_seconds=60)


class TestSources:
    def test_default_channel_config_enables_only_in_app(self):
        in_app = default_channel_config("account-1", Channel.IN_APP)
        email = default_channel_config("account-1", Channel.EMAIL)

        assert in_app.enabled and in_app.address == "account-1"
        assert not email.enabled

    def test_account_settings_round_trip(self, dnd_factory, channel_config_factory):
        settings = InMemoryAccountSettings()
        dnd = dnd_factory()
        config = channel_config_factory(channel=Channel.SMS, address="+15555550100")

        settings.put_dnd_config(dnd)
        settings.put_channel_config(config)

        assert settings.get_dnd_config("account-1") == dnd
        assert settings.get_channel_config("account-1", Channel.SMS) == config
        assert settings.get_channel_config("account-1", Channel.EMAIL) is None

        settings.clear_dnd_config("account-1")
        assert settings.get_dnd_config("account-1") is None

    def test_template_source(self, template_factory):
        source = InMemoryTemplateSource()
        template = template_factory()
        source.put(template)
        assert source.get_template("template-1") is template
        assert source.get_template("missing") is None
