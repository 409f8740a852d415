"""Trigger scheduler.

Holds the active reminder triggers and, on every tick, emits one DueEvent per
trigger whose ``next_fire_at`` has passed. Events go onto a queue; the tick
never calls into delivery. ``next_fire_at`` is always recomputed from the
current clock, so a clock jump or a long pause coalesces missed fires into a
single event instead of replaying them.
"""

import queue
import threading
from datetime import datetime
from typing import Dict, List, Optional

from infrastructure.logging import get_module_logger
from modules.reminders.clock import Clock, utcnow
from modules.reminders.errors import DuplicateTriggerError, TriggerNotFoundError
from modules.reminders.models import DueEvent, ReminderTrigger
from modules.reminders.schedule import next_occurrence, validate_expression

logger = get_module_logger()


class TriggerScheduler:
    """In-memory registry of triggers with a tick-driven due check.

    The scheduler is the only writer of ``ReminderTrigger.next_fire_at``.
    Callers receive copies; mutating them has no effect on scheduling.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        due_events: Optional["queue.Queue[DueEvent]"] = None,
    ):
        self._clock = clock or utcnow
        self._triggers: Dict[str, ReminderTrigger] = {}
        self._lock = threading.Lock()
        self.due_events: "queue.Queue[DueEvent]" = due_events or queue.Queue()

    def add(self, trigger: ReminderTrigger) -> ReminderTrigger:
        """Register a trigger.

        Raises:
            InvalidScheduleError: If the schedule expression is invalid
            DuplicateTriggerError: If an active trigger with the same id exists
        """
        expression = validate_expression(trigger.schedule_expression)
        now = self._clock()
        stored = trigger.model_copy(
            update={"schedule_expression": expression, "active": True}
        )
        if stored.next_fire_at is None or stored.next_fire_at < now:
            stored.next_fire_at = next_occurrence(expression, now, stored.timezone)

        with self._lock:
            if trigger.id in self._triggers:
                raise DuplicateTriggerError(trigger.id)
            self._triggers[trigger.id] = stored

        logger.info(
            "trigger_added",
            trigger_id=stored.id,
            schedule_expression=expression,
            next_fire_at=stored.next_fire_at.isoformat(),
        )
        return stored.model_copy()

    def remove(self, trigger_id: str) -> ReminderTrigger:
        """Deactivate a trigger. Occurrences already emitted are unaffected."""
        with self._lock:
            trigger = self._triggers.pop(trigger_id, None)
        if trigger is None:
            raise TriggerNotFoundError(trigger_id)
        logger.info("trigger_removed", trigger_id=trigger_id)
        return trigger.model_copy(update={"active": False})

    def pause(self, trigger_id: str) -> ReminderTrigger:
        with self._lock:
            trigger = self._get_locked(trigger_id)
            trigger.paused = True
            snapshot = trigger.model_copy()
        logger.info("trigger_paused", trigger_id=trigger_id)
        return snapshot

    def resume(self, trigger_id: str) -> ReminderTrigger:
        """Resume a paused trigger from the next slot after now."""
        now = self._clock()
        with self._lock:
            trigger = self._get_locked(trigger_id)
            if trigger.paused:
                trigger.paused = False
                trigger.next_fire_at = next_occurrence(
                    trigger.schedule_expression, now, trigger.timezone
                )
            snapshot = trigger.model_copy()
        logger.info(
            "trigger_resumed",
            trigger_id=trigger_id,
            next_fire_at=snapshot.next_fire_at.isoformat(),
        )
        return snapshot

    def get(self, trigger_id: str) -> ReminderTrigger:
        with self._lock:
            return self._get_locked(trigger_id).model_copy()

    def triggers(self) -> List[ReminderTrigger]:
        with self._lock:
            return [t.model_copy() for _, t in sorted(self._triggers.items())]

    def _get_locked(self, trigger_id: str) -> ReminderTrigger:
        trigger = self._triggers.get(trigger_id)
        if trigger is None:
            raise TriggerNotFoundError(trigger_id)
        return trigger

    def tick(self, now: Optional[datetime] = None) -> List[DueEvent]:
        """Emit due events in ascending trigger id order and advance triggers.

        Each due trigger fires once per tick, stamped with the slot it was due
        for, and its next fire time is the first slot strictly after
        ``max(now, fired_at)``.
        """
        now = now or self._clock()
        events: List[DueEvent] = []

        with self._lock:
            for trigger_id in sorted(self._triggers):
                trigger = self._triggers[trigger_id]
                if trigger.paused or trigger.next_fire_at is None:
                    continue
                if trigger.next_fire_at > now:
                    continue

                fired_at = trigger.next_fire_at
                events.append(DueEvent(trigger=trigger.model_copy(), fired_at=fired_at))
                trigger.next_fire_at = next_occurrence(
                    trigger.schedule_expression, max(now, fired_at), trigger.timezone
                )

        for event in events:
            self.due_events.put_nowait(event)
            logger.debug(
                "trigger_fired",
                trigger_id=event.trigger.id,
                fired_at=event.fired_at.isoformat(),
            )
        return events
