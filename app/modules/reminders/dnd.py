"""Do Not Disturb gate.

Decides whether a due reminder goes out now, waits for the end of the
account's quiet hours, or bypasses them because it is urgent.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz
from pydantic import BaseModel, ConfigDict

from modules.reminders.models import (
    DoNotDisturbConfig,
    DueEvent,
    GateDecision,
    Priority,
)


class GateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision: GateDecision
    defer_until: Optional[datetime] = None

    @property
    def deliver_now(self) -> bool:
        return self.decision != GateDecision.DEFER_UNTIL


DELIVER_NOW = GateResult(decision=GateDecision.DELIVER_NOW)
DELIVER_NOW_OVERRIDE = GateResult(decision=GateDecision.DELIVER_NOW_OVERRIDE)


def _active_window(
    local_now: datetime, quiet_start: time, quiet_end: time
) -> Optional[Tuple[date, date]]:
    """(start day, end day) of the quiet window containing ``local_now``, if any.

    The window is half-open, ``[quiet_start, quiet_end)``, and wraps midnight
    when ``quiet_start > quiet_end``. Equal bounds mean no quiet hours.
    """
    current = local_now.time().replace(tzinfo=None)
    today = local_now.date()

    if quiet_start == quiet_end:
        return None
    if quiet_start < quiet_end:
        if quiet_start <= current < quiet_end:
            return today, today
        return None
    if current >= quiet_start:
        return today, today + timedelta(days=1)
    if current < quiet_end:
        return today - timedelta(days=1), today
    return None


class DoNotDisturbGate:
    """Stateless quiet-hours policy.

    Configuration is passed in on every call; the gate holds no settings.
    """

    def evaluate(
        self,
        event: DueEvent,
        config: Optional[DoNotDisturbConfig],
        now: datetime,
    ) -> GateResult:
        """Decide what to do with ``event`` at ``now``.

        Returns:
            DELIVER_NOW when there is no enabled config, DELIVER_NOW_OVERRIDE
            for every urgent event when the account allows it (inside the
            window or not), DELIVER_NOW when ``now`` is outside the window,
            otherwise DEFER_UNTIL with the UTC instant of ``quiet_end``.
        """
        if config is None or not config.enabled:
            return DELIVER_NOW

        if event.trigger.priority == Priority.URGENT and config.allow_urgent_override:
            return DELIVER_NOW_OVERRIDE

        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        tz = pytz.timezone(config.timezone)
        local_now = now.astimezone(tz)

        window = _active_window(local_now, config.quiet_start, config.quiet_end)
        if window is None:
            return DELIVER_NOW

        start_day, end_day = window
        if config.days_of_week is not None and start_day.weekday() not in config.days_of_week:
            return DELIVER_NOW

        local_end = tz.normalize(
            tz.localize(datetime.combine(end_day, config.quiet_end))
        )
        return GateResult(
            decision=GateDecision.DEFER_UNTIL,
            defer_until=local_end.astimezone(timezone.utc),
        )
