"""Reminder trigger and notification delivery module.

Turns recurring schedules into delivered notifications:

- ``scheduler``: cron triggers and the tick that emits due events
- ``dnd``: per-account quiet hours
- ``renderer``: per-channel template rendering
- ``rate_limiter``: sliding-window quotas per (account, channel)
- ``channels``: email, push, SMS and in-app adapters
- ``dispatcher`` / ``retry``: one delivery attempt and its follow-ups
- ``statistics``: template, group and trigger counters
- ``engine``: wiring and the periodic driver
"""

from modules.reminders.engine import ReminderEngine
from modules.reminders.errors import (
    DuplicateTriggerError,
    InvalidScheduleError,
    RenderError,
    ReminderError,
    TemplateNotFoundError,
    TriggerNotFoundError,
)
from modules.reminders.models import (
    Channel,
    DoNotDisturbConfig,
    NotificationTemplate,
    OccurrenceState,
    Priority,
    ReminderTrigger,
)

__all__ = [
    "Channel",
    "DoNotDisturbConfig",
    "DuplicateTriggerError",
    "InvalidScheduleError",
    "NotificationTemplate",
    "OccurrenceState",
    "Priority",
    "ReminderEngine",
    "ReminderError",
    "ReminderTrigger",
    "RenderError",
    "TemplateNotFoundError",
    "TriggerNotFoundError",
]
