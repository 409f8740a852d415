"""API request and response schemas for the reminders endpoints.

Key distinction from models.py:
  - schemas.py: HTTP contracts, with OpenAPI examples
  - models.py: engine domain models shared by every pipeline stage
"""

from datetime import datetime, time
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from modules.reminders.models import (
    Channel,
    ChannelConfig,
    DoNotDisturbConfig,
    NotificationTemplate,
    Priority,
    RateLimitPolicy,
    ReminderTrigger,
    validate_timezone,
)


class CreateTriggerRequest(BaseModel):
    """Schema for scheduling a new reminder trigger."""

    id: Annotated[
        str,
        Field(
            ...,
            min_length=1,
            description="Caller-assigned trigger ID",
            json_schema_extra={"example": "standup-daily"},
        ),
    ]
    schedule_expression: Annotated[
        str,
        Field(
            ...,
            min_length=1,
            description="Cron expression (sec min hour dom mon dow, or 5-field)",
            json_schema_extra={"example": "0 30 9 * * MON-FRI"},
        ),
    ]
    template_id: Annotated[
        str, Field(..., min_length=1, json_schema_extra={"example": "tpl-standup"})
    ]
    group_id: Annotated[
        str, Field(..., min_length=1, json_schema_extra={"example": "team-core"})
    ]
    account_id: Annotated[
        str, Field(..., min_length=1, json_schema_extra={"example": "acct-42"})
    ]
    priority: Annotated[Priority, Field(default=Priority.NORMAL)] = Priority.NORMAL
    channels: Annotated[
        List[Channel],
        Field(
            default_factory=lambda: [Channel.IN_APP],
            min_length=1,
            description="Channels to deliver on",
            json_schema_extra={"example": ["email", "in_app"]},
        ),
    ]
    variables: Annotated[
        Dict[str, Any],
        Field(
            default_factory=dict,
            description="Values for the template's variable slots",
            json_schema_extra={"example": {"name": "Ana"}},
        ),
    ]
    timezone: Annotated[
        str,
        Field(
            default="UTC",
            description="IANA timezone the schedule is evaluated in",
            json_schema_extra={"example": "America/Toronto"},
        ),
    ] = "UTC"

    _check_timezone = field_validator("timezone")(validate_timezone)

    def to_trigger(self) -> ReminderTrigger:
        return ReminderTrigger(**self.model_dump())


class TriggerResponse(BaseModel):
    """Schema for a trigger as seen by API clients."""

    id: str
    schedule_expression: str
    template_id: str
    group_id: str
    account_id: str
    priority: Priority
    channels: List[Channel]
    timezone: str
    next_fire_at: Optional[datetime] = None
    active: bool
    paused: bool

    @classmethod
    def from_trigger(cls, trigger: ReminderTrigger) -> "TriggerResponse":
        return cls(**trigger.model_dump(exclude={"variables"}))


class PutTemplateRequest(BaseModel):
    """Schema for creating or replacing a notification template."""

    channel_contents: Annotated[
        Dict[Channel, Dict[str, Any]],
        Field(
            ...,
            min_length=1,
            description="Content per channel; text fields may hold {{name}} placeholders",
            json_schema_extra={
                "example": {
                    "email": {"subject": "Stand-up", "body": "Hi {{name}}, stand-up in 5"},
                    "in_app": {"title": "Stand-up", "body": "Starts in 5 minutes"},
                }
            },
        ),
    ]
    variable_slots: Annotated[
        List[str],
        Field(
            default_factory=list,
            description="Variables every occurrence must supply",
            json_schema_extra={"example": ["name"]},
        ),
    ]

    def to_template(self, template_id: str) -> NotificationTemplate:
        return NotificationTemplate(
            id=template_id,
            channel_contents=self.channel_contents,
            variable_slots=frozenset(self.variable_slots),
        )


class TemplateResponse(BaseModel):
    id: str
    channel_contents: Dict[Channel, Dict[str, Any]]
    variable_slots: List[str]

    @classmethod
    def from_template(cls, template: NotificationTemplate) -> "TemplateResponse":
        return cls(
            id=template.id,
            channel_contents={
                channel: content.model_dump(exclude_none=True)
                for channel, content in template.channel_contents.items()
            },
            variable_slots=sorted(template.variable_slots),
        )


class QuietHoursRequest(BaseModel):
    """Schema for an account's Do Not Disturb window."""

    quiet_start: Annotated[
        time,
        Field(
            ...,
            description="Window start (inclusive)",
            json_schema_extra={"example": "22:00"},
        ),
    ]
    quiet_end: Annotated[
        time,
        Field(
            ...,
            description="Window end (exclusive)",
            json_schema_extra={"example": "07:00"},
        ),
    ]
    allow_urgent_override: bool = False
    enabled: bool = True
    timezone: Annotated[
        str, Field(default="UTC", json_schema_extra={"example": "America/Toronto"})
    ] = "UTC"
    days_of_week: Annotated[
        Optional[List[Annotated[int, Field(ge=0, le=6)]]],
        Field(
            default=None,
            description="Days (0 = Monday) on which the window starts; all days when omitted",
            json_schema_extra={"example": [0, 1, 2, 3, 4]},
        ),
    ] = None

    _check_timezone = field_validator("timezone")(validate_timezone)

    def to_config(self, account_id: str) -> DoNotDisturbConfig:
        data = self.model_dump()
        if data["days_of_week"] is not None:
            data["days_of_week"] = frozenset(data["days_of_week"])
        return DoNotDisturbConfig(account_id=account_id, **data)


class ChannelConfigRequest(BaseModel):
    """Schema for enabling or disabling a channel for an account."""

    enabled: bool = True
    address: Annotated[
        Optional[str],
        Field(
            default=None,
            description="Email address, device token, E.164 phone number or in-app user id",
            json_schema_extra={"example": "+15555550100"},
        ),
    ] = None
    rate_limit_policy: Optional[RateLimitPolicy] = None

    def to_config(self, account_id: str, channel: Channel) -> ChannelConfig:
        return ChannelConfig(channel=channel, account_id=account_id, **self.model_dump())


class ErrorResponse(BaseModel):
    detail: str
