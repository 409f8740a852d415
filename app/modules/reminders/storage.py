"""Persistence boundary for delivery attempts, statistics and triggers.

Durability and schema belong to the storage owner; the engine only needs
append, upsert and load. InMemoryDeliveryStore keeps everything in process.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Protocol, Tuple

from modules.reminders.models import DeliveryAttempt, ReminderTrigger, StatsView

StatsDelta = Dict[str, Any]


class DeliveryStore(Protocol):
    def append(self, attempt: DeliveryAttempt) -> None:
        """Append one attempt to the audit trail."""
        ...

    def upsert_stats(self, view: StatsView, key: str, delta: StatsDelta) -> None:
        """Apply ``delta`` to one statistics row.

        Integer values are increments; datetime values replace the stored
        value when later.
        """
        ...

    def load_active_triggers(self) -> List[ReminderTrigger]:
        ...

    def save_trigger(self, trigger: ReminderTrigger) -> None:
        ...

    def deactivate_trigger(self, trigger_id: str) -> None:
        ...


class InMemoryDeliveryStore:
    def __init__(self):
        self._attempts: List[DeliveryAttempt] = []
        self._stats: Dict[Tuple[StatsView, str], Dict[str, Any]] = defaultdict(dict)
        self._triggers: Dict[str, ReminderTrigger] = {}
        self._lock = threading.Lock()

    def append(self, attempt: DeliveryAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def upsert_stats(self, view: StatsView, key: str, delta: StatsDelta) -> None:
        with self._lock:
            row = self._stats[(view, key)]
            for field, value in delta.items():
                if isinstance(value, datetime):
                    current = row.get(field)
                    if current is None or value > current:
                        row[field] = value
                else:
                    row[field] = row.get(field, 0) + value

    def load_active_triggers(self) -> List[ReminderTrigger]:
        with self._lock:
            return [
                t.model_copy()
                for _, t in sorted(self._triggers.items())
                if t.active
            ]

    def save_trigger(self, trigger: ReminderTrigger) -> None:
        with self._lock:
            self._triggers[trigger.id] = trigger.model_copy()

    def deactivate_trigger(self, trigger_id: str) -> None:
        with self._lock:
            trigger = self._triggers.get(trigger_id)
            if trigger is not None:
                self._triggers[trigger_id] = trigger.model_copy(update={"active": False})

    def attempts(self) -> List[DeliveryAttempt]:
        with self._lock:
            return list(self._attempts)

    def attempts_for(self, occurrence_id: str) -> List[DeliveryAttempt]:
        with self._lock:
            return [a for a in self._attempts if a.occurrence_id == occurrence_id]

    def stats_row(self, view: StatsView, key: str) -> Dict[str, Any]:
        with self._lock:
            return dict(self._stats.get((view, key), {}))
