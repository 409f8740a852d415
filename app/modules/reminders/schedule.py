"""Schedule expression evaluation.

Expressions have six fields, ``second minute hour day-of-month month
day-of-week``, with ``*`` meaning any value. Classic five-field cron
(``minute hour day-of-month month day-of-week``) is accepted and fires at
second 0. Day-of-week follows cron: 0 or 7 is Sunday.

Evaluation happens in the trigger's timezone so "09:00 every weekday" stays
09:00 local time across daylight saving changes; results are returned in UTC.
"""

from datetime import datetime, timezone
from typing import List

import pytz
from croniter import croniter

from modules.reminders.errors import InvalidScheduleError


def _to_croniter_fields(expression: str) -> str:
    fields: List[str] = expression.split()
    if len(fields) == 5:
        return " ".join(fields)
    if len(fields) == 6:
        # croniter expects seconds as the trailing field
        return " ".join(fields[1:] + fields[:1])
    raise InvalidScheduleError(
        expression, f"expected 5 or 6 fields, got {len(fields)}"
    )


def validate_expression(expression: str) -> str:
    """Return the normalized expression or raise InvalidScheduleError."""
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidScheduleError(str(expression), "empty schedule expression")
    normalized = " ".join(expression.split())
    if not croniter.is_valid(_to_croniter_fields(normalized)):
        raise InvalidScheduleError(expression)
    return normalized


def _localize(tz, wall: datetime) -> datetime:
    """Attach ``tz`` to a naive wall time.

    A wall time repeated when clocks fall back maps to its first instant. A
    wall time skipped when clocks spring forward maps to the same offset
    from the start of the gap (02:30 becomes 03:30).
    """
    try:
        return tz.localize(wall, is_dst=None)
    except pytz.AmbiguousTimeError:
        return tz.localize(wall, is_dst=True)
    except pytz.NonExistentTimeError:
        return tz.normalize(tz.localize(wall, is_dst=False))


def next_occurrence(
    expression: str, from_time: datetime, tz_name: str = "UTC"
) -> datetime:
    """First instant strictly after ``from_time`` matching ``expression``.

    Matching is done on local wall-clock time, so each matching wall time
    fires once per day even when clocks fall back and the hour repeats.

    Args:
        expression: Five or six field schedule expression
        from_time: Reference instant; naive values are treated as UTC
        tz_name: IANA timezone the expression is evaluated in

    Returns:
        Timezone-aware UTC datetime

    Raises:
        InvalidScheduleError: If the expression is invalid
    """
    cron = _to_croniter_fields(validate_expression(expression))
    if from_time.tzinfo is None:
        from_time = from_time.replace(tzinfo=timezone.utc)

    tz = pytz.timezone(tz_name)
    wall = from_time.astimezone(tz).replace(tzinfo=None)
    walls = croniter(cron, wall)
    while True:
        candidate = walls.get_next(datetime)
        result = _localize(tz, candidate).astimezone(timezone.utc)
        # a repeated wall time already fired on its first pass
        if result > from_time:
            return result
