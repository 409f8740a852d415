"""Channel adapters, one per Channel member."""

from typing import Dict, Optional

from infrastructure.configuration.integrations import ChannelSettings
from modules.reminders.channels.base import (
    NotificationChannel,
    SendOutcome,
    outcome_from_result,
)
from modules.reminders.channels.email import EmailChannel
from modules.reminders.channels.in_app import InAppChannel, InAppNotification
from modules.reminders.channels.push import PushChannel
from modules.reminders.channels.sms import SmsChannel
from modules.reminders.clock import Clock
from modules.reminders.models import Channel

ChannelAdapters = Dict[Channel, NotificationChannel]


def build_channel_adapters(
    settings: ChannelSettings,
    timeout_seconds: float = 10.0,
    clock: Optional[Clock] = None,
) -> ChannelAdapters:
    """One adapter per Channel, configured from ChannelSettings."""
    return {
        Channel.EMAIL: EmailChannel(settings, timeout_seconds, clock=clock),
        Channel.PUSH: PushChannel(settings, timeout_seconds, clock=clock),
        Channel.SMS: SmsChannel(settings, timeout_seconds, clock=clock),
        Channel.IN_APP: InAppChannel(clock=clock),
    }


__all__ = [
    "ChannelAdapters",
    "EmailChannel",
    "InAppChannel",
    "InAppNotification",
    "NotificationChannel",
    "PushChannel",
    "SendOutcome",
    "SmsChannel",
    "build_channel_adapters",
    "outcome_from_result",
]
