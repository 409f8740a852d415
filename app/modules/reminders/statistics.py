"""Delivery statistics.

The template, group and trigger views are projections of one stream of
outcomes. ``classify_outcome`` is the single place that decides which
counters an outcome moves; ``StatisticsAggregator.record`` applies the result
to all three views under one lock and forwards the same deltas to storage.
Counters are all-time and only go back to zero through ``reset``.
"""

import threading
from datetime import datetime
from typing import Dict, Optional

from infrastructure.logging import get_module_logger
from modules.reminders.clock import Clock, utcnow
from modules.reminders.models import (
    GroupStatsInfo,
    Outcome,
    StatsView,
    TemplateStatsInfo,
    TriggerStatsInfo,
)
from modules.reminders.storage import DeliveryStore, StatsDelta

logger = get_module_logger()

ViewDeltas = Dict[StatsView, StatsDelta]


def classify_outcome(outcome: Outcome, at: datetime) -> ViewDeltas:
    """Counter increments for ``outcome`` in each statistics view."""
    if outcome == Outcome.DELIVERED:
        return {
            StatsView.TEMPLATE: {"sent_count": 1, "last_sent_at": at},
            StatsView.GROUP: {"sent_count": 1},
            StatsView.TRIGGER: {"fired_count": 1},
        }
    if outcome == Outcome.FAILED:
        return {
            StatsView.TEMPLATE: {"failed_count": 1},
            StatsView.GROUP: {"failed_count": 1},
            StatsView.TRIGGER: {"failed_count": 1},
        }
    if outcome == Outcome.SUPPRESSED:
        return {StatsView.TRIGGER: {"suppressed_count": 1}}
    if outcome == Outcome.RETRYING:
        return {StatsView.TEMPLATE: {"retried_count": 1}}
    raise ValueError(f"unknown outcome: {outcome!r}")


def _apply(info, delta: StatsDelta) -> None:
    for field, value in delta.items():
        if isinstance(value, datetime):
            current = getattr(info, field)
            if current is None or value > current:
                setattr(info, field, value)
        else:
            setattr(info, field, getattr(info, field) + value)


class StatisticsAggregator:
    def __init__(self, store: Optional[DeliveryStore] = None, clock: Optional[Clock] = None):
        self._store = store
        self._clock = clock or utcnow
        self._lock = threading.Lock()
        self._templates: Dict[str, TemplateStatsInfo] = {}
        self._groups: Dict[str, GroupStatsInfo] = {}
        self._triggers: Dict[str, TriggerStatsInfo] = {}

    def record(
        self,
        template_id: str,
        group_id: str,
        trigger_id: str,
        outcome: Outcome,
        at: Optional[datetime] = None,
    ) -> None:
        """Apply one outcome to the template, group and trigger views."""
        deltas = classify_outcome(outcome, at or self._clock())
        keys = {
            StatsView.TEMPLATE: template_id,
            StatsView.GROUP: group_id,
            StatsView.TRIGGER: trigger_id,
        }

        with self._lock:
            for view, delta in deltas.items():
                _apply(self._row(view, keys[view]), delta)

        if self._store is not None:
            for view, delta in deltas.items():
                self._store.upsert_stats(view, keys[view], delta)

        logger.debug(
            "statistics_recorded",
            outcome=outcome.value,
            template_id=template_id,
            group_id=group_id,
            trigger_id=trigger_id,
        )

    def _row(self, view: StatsView, key: str):
        if view == StatsView.TEMPLATE:
            return self._templates.setdefault(key, TemplateStatsInfo(template_id=key))
        if view == StatsView.GROUP:
            return self._groups.setdefault(key, GroupStatsInfo(group_id=key))
        return self._triggers.setdefault(key, TriggerStatsInfo(trigger_id=key))

    def get_template_stats(self, template_id: str) -> TemplateStatsInfo:
        with self._lock:
            info = self._templates.get(template_id)
            return info.model_copy() if info else TemplateStatsInfo(template_id=template_id)

    def get_group_stats(self, group_id: str) -> GroupStatsInfo:
        with self._lock:
            info = self._groups.get(group_id)
            return info.model_copy() if info else GroupStatsInfo(group_id=group_id)

    def get_trigger_stats(self, trigger_id: str) -> TriggerStatsInfo:
        with self._lock:
            info = self._triggers.get(trigger_id)
            return info.model_copy() if info else TriggerStatsInfo(trigger_id=trigger_id)

    def reset(self) -> None:
        """Start a new measurement epoch."""
        with self._lock:
            self._templates.clear()
            self._groups.clear()
            self._triggers.clear()
        logger.info("statistics_reset")
