"""Domain models for the reminder engine.

Pydantic models shared by every reminder component: triggers and templates
coming in from the schedule and template sources, per-account channel and
Do Not Disturb settings, the occurrences produced when a trigger fires, and
the append-only delivery attempts and statistics views produced by dispatch.

Key distinction from schemas.py:
  - models.py: Engine-internal models, validated on construction
  - schemas.py: HTTP request/response contracts
"""

from datetime import datetime, time, timezone
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Optional, Union
from uuid import uuid4

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Channel(str, Enum):
    """Delivery media. One adapter class exists per member."""

    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"
    IN_APP = "in_app"


class Priority(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"


class OccurrenceState(str, Enum):
    """Lifecycle of one reminder occurrence.

    SUCCEEDED and FAILED_TERMINAL are the only terminal states.
    """

    SCHEDULED = "scheduled"
    DEFERRED = "deferred"
    RENDERING = "rendering"
    RATE_CHECK = "rate_check"
    SENDING = "sending"
    RETRY_PENDING = "retry_pending"
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"

    @property
    def is_terminal(self) -> bool:
        return self in (OccurrenceState.SUCCEEDED, OccurrenceState.FAILED_TERMINAL)


class GateDecision(str, Enum):
    DELIVER_NOW = "deliver_now"
    DEFER_UNTIL = "defer_until"
    DELIVER_NOW_OVERRIDE = "deliver_now_override"


class Outcome(str, Enum):
    """Classification applied to all three statistics views at once."""

    DELIVERED = "delivered"
    FAILED = "failed"
    SUPPRESSED = "suppressed"
    RETRYING = "retrying"


class ErrorCode(str, Enum):
    """Engine level failure codes. Adapters may also report gateway codes."""

    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    ADAPTER_EXCEPTION = "ADAPTER_EXCEPTION"
    CHANNEL_DISABLED = "CHANNEL_DISABLED"
    NO_RECIPIENT = "NO_RECIPIENT"
    MISSING_VARIABLE = "MISSING_VARIABLE"
    UNSUPPORTED_CHANNEL = "UNSUPPORTED_CHANNEL"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    SETTINGS_UNAVAILABLE = "SETTINGS_UNAVAILABLE"
    CHANNEL_BUSY = "CHANNEL_BUSY"


def validate_timezone(value: str) -> str:
    try:
        pytz.timezone(value)
    except pytz.UnknownTimeZoneError as e:
        raise ValueError(f"unknown timezone: {value}") from e
    return value


# Content shapes


class EmailContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    body: str
    html_body: Optional[str] = None


class PushContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str


class SmsContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class InAppContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str


TemplateContent = Union[EmailContent, PushContent, SmsContent, InAppContent]

CONTENT_TYPES: Dict[Channel, type] = {
    Channel.EMAIL: EmailContent,
    Channel.PUSH: PushContent,
    Channel.SMS: SmsContent,
    Channel.IN_APP: InAppContent,
}


class NotificationTemplate(BaseModel):
    """Channel specific content with ``{{name}}`` placeholders.

    Each entry of ``channel_contents`` is coerced to the content shape of its
    channel, so ``{"title": ..., "body": ...}`` under ``push`` becomes a
    PushContent and under ``in_app`` an InAppContent.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    channel_contents: Dict[Channel, Any]
    variable_slots: FrozenSet[str] = frozenset()

    @field_validator("channel_contents")
    @classmethod
    def _coerce_contents(cls, value: Dict[Channel, Any]) -> Dict[Channel, Any]:
        coerced = {}
        for channel, content in value.items():
            content_type = CONTENT_TYPES[channel]
            if isinstance(content, content_type):
                coerced[channel] = content
            elif isinstance(content, BaseModel):
                coerced[channel] = content_type.model_validate(content.model_dump())
            else:
                coerced[channel] = content_type.model_validate(content)
        return coerced


# Account settings


class RateLimitPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_per_window: Annotated[int, Field(gt=0)]
    window_duration_seconds: Annotated[float, Field(gt=0)]


class ChannelConfig(BaseModel):
    """Per (account, channel) delivery settings.

    ``address`` is the recipient on that channel: an email address, a device
    token, a phone number, or an in-app user id (defaults to the account id).
    """

    model_config = ConfigDict(frozen=True)

    channel: Channel
    account_id: str
    enabled: bool = True
    rate_limit_policy: Optional[RateLimitPolicy] = None
    address: Optional[str] = None


class DoNotDisturbConfig(BaseModel):
    """Quiet hours for one account.

    The window ``[quiet_start, quiet_end)`` is read in ``timezone`` and wraps
    midnight when ``quiet_start > quiet_end``. When ``days_of_week`` is set
    (0 = Monday) only windows starting on a listed day are active.
    """

    model_config = ConfigDict(frozen=True)

    account_id: str
    quiet_start: time
    quiet_end: time
    allow_urgent_override: bool = False
    enabled: bool = True
    timezone: str = "UTC"
    days_of_week: Optional[FrozenSet[Annotated[int, Field(ge=0, le=6)]]] = None

    _check_timezone = field_validator("timezone")(validate_timezone)


# Triggers and occurrences


class ReminderTrigger(BaseModel):
    """A recurring schedule that produces reminder occurrences.

    ``next_fire_at`` is owned by the scheduler and is always UTC.
    """

    id: str
    schedule_expression: str
    template_id: str
    group_id: str
    account_id: str
    priority: Priority = Priority.NORMAL
    channels: List[Channel] = Field(default_factory=lambda: [Channel.IN_APP])
    variables: Dict[str, Any] = Field(default_factory=dict)
    timezone: str = "UTC"
    next_fire_at: Optional[datetime] = None
    active: bool = True
    paused: bool = False

    _check_timezone = field_validator("timezone")(validate_timezone)

    @field_validator("next_fire_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("channels")
    @classmethod
    def _dedupe_channels(cls, value: List[Channel]) -> List[Channel]:
        if not value:
            raise ValueError("at least one channel is required")
        return list(dict.fromkeys(value))


class DueEvent(BaseModel):
    """Emitted by the scheduler once per trigger fire."""

    model_config = ConfigDict(frozen=True)

    trigger: ReminderTrigger
    fired_at: datetime


class ReminderOccurrence(BaseModel):
    """One concrete delivery of a fired trigger on one channel."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    trigger_id: str
    template_id: str
    group_id: str
    account_id: str
    channel: Channel
    priority: Priority = Priority.NORMAL
    variables: Dict[str, Any] = Field(default_factory=dict)
    fired_at: datetime
    attempt_number: int = 0
    state: OccurrenceState = OccurrenceState.SCHEDULED

    @classmethod
    def from_event(cls, event: DueEvent, channel: Channel) -> "ReminderOccurrence":
        trigger = event.trigger
        return cls(
            trigger_id=trigger.id,
            template_id=trigger.template_id,
            group_id=trigger.group_id,
            account_id=trigger.account_id,
            channel=channel,
            priority=trigger.priority,
            variables=dict(trigger.variables),
            fired_at=event.fired_at,
        )


# Delivery outcomes


class ChannelResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    delivered_at: datetime
    provider_message_id: Optional[str] = None


class ChannelError(BaseModel):
    """Failure payload; ``retryable`` decides between retry and terminal failure."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    retryable: bool
    retry_after: Optional[datetime] = None


class OutboundMessage(BaseModel):
    """What an adapter sends: rendered content addressed to one recipient."""

    model_config = ConfigDict(frozen=True)

    occurrence_id: str
    account_id: str
    recipient: str
    content: TemplateContent


class DeliveryAttempt(BaseModel):
    """Append-only audit record of one dispatch call."""

    model_config = ConfigDict(frozen=True)

    occurrence_id: str
    trigger_id: str
    channel: Channel
    attempt_number: Annotated[int, Field(ge=1)]
    started_at: datetime
    outcome: Union[ChannelResponse, ChannelError]
    next_retry_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, ChannelResponse)

    @property
    def retryable(self) -> bool:
        return isinstance(self.outcome, ChannelError) and self.outcome.retryable


# Statistics views


class TemplateStatsInfo(BaseModel):
    template_id: str
    sent_count: int = 0
    failed_count: int = 0
    retried_count: int = 0
    last_sent_at: Optional[datetime] = None


class GroupStatsInfo(BaseModel):
    group_id: str
    sent_count: int = 0
    failed_count: int = 0


class TriggerStatsInfo(BaseModel):
    trigger_id: str
    fired_count: int = 0
    suppressed_count: int = 0
    failed_count: int = 0


class StatsView(str, Enum):
    TEMPLATE = "template"
    GROUP = "group"
    TRIGGER = "trigger"
