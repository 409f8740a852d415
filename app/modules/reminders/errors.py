"""Errors raised by the reminder engine."""

from enum import Enum
from typing import Optional


class ReminderError(Exception):
    """Base class for reminder engine errors."""


class InvalidScheduleError(ReminderError, ValueError):
    """Raised at trigger creation when a schedule expression cannot be parsed."""

    def __init__(self, expression: str, reason: str = "invalid schedule expression"):
        super().__init__(f"{reason}: {expression!r}")
        self.expression = expression
        self.reason = reason


class RenderErrorKind(str, Enum):
    MISSING_VARIABLE = "MISSING_VARIABLE"
    UNSUPPORTED_CHANNEL = "UNSUPPORTED_CHANNEL"


class RenderError(ReminderError):
    """Raised when a template cannot be rendered for a channel.

    Attributes:
        kind: RenderErrorKind
        template_id: template being rendered
        channel: requested channel value
        slot: the variable without a value (MISSING_VARIABLE only)
    """

    def __init__(
        self,
        kind: RenderErrorKind,
        template_id: str,
        channel: str,
        slot: Optional[str] = None,
    ):
        if kind == RenderErrorKind.MISSING_VARIABLE:
            message = f"template {template_id} is missing a value for '{slot}'"
        else:
            message = f"template {template_id} has no content for channel {channel}"
        super().__init__(message)
        self.kind = kind
        self.template_id = template_id
        self.channel = channel
        self.slot = slot


class TriggerNotFoundError(ReminderError):
    def __init__(self, trigger_id: str):
        super().__init__(f"trigger {trigger_id} not found")
        self.trigger_id = trigger_id


class DuplicateTriggerError(ReminderError):
    def __init__(self, trigger_id: str):
        super().__init__(f"trigger {trigger_id} already exists")
        self.trigger_id = trigger_id


class TemplateNotFoundError(ReminderError):
    def __init__(self, template_id: str):
        super().__init__(f"template {template_id} not found")
        self.template_id = template_id


class SettingsNotWritableError(ReminderError):
    """Raised when templates or account settings are owned by a read-only source."""

    def __init__(self, source: str):
        super().__init__(f"{source} cannot be changed through the engine")
        self.source = source
