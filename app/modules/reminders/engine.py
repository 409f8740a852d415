"""Reminder engine: wires the delivery pipeline and drives it.

    TriggerScheduler -> DoNotDisturbGate -> ChannelDispatcher
        -> (success -> statistics | failure -> RetryCoordinator)

A single periodic job, run by the ``schedule`` library on a background
thread, calls ``run_pending`` every tick: it releases deferred events whose
quiet hours ended, ticks the scheduler, hands due events to a worker pool
and pumps due retries. Events of the same trigger are processed one at a
time in fire order, and a trigger with deferred events holds later fires
behind them; different triggers run concurrently.

Before ``start`` (and in tests) ``run_pending`` does all the work inline on
the calling thread.
"""

import heapq
import itertools
import queue
import random
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Tuple, Union

import schedule

from infrastructure.configuration import Settings
from infrastructure.events import Event, dispatch_background
from infrastructure.logging import clear_request_context, get_module_logger
from infrastructure.resilience.retry import RetryConfig
from modules.reminders.channels import ChannelAdapters, build_channel_adapters
from modules.reminders.clock import Clock, utcnow
from modules.reminders.dispatcher import (
    ChannelDispatcher,
    Publisher,
    settings_unavailable,
)
from modules.reminders.dnd import DoNotDisturbGate
from modules.reminders.errors import SettingsNotWritableError, TemplateNotFoundError
from modules.reminders.models import (
    Channel,
    ChannelConfig,
    ChannelError,
    DoNotDisturbConfig,
    DueEvent,
    GateDecision,
    GroupStatsInfo,
    NotificationTemplate,
    OccurrenceState,
    Outcome,
    ReminderOccurrence,
    ReminderTrigger,
    TemplateStatsInfo,
    TriggerStatsInfo,
)
from modules.reminders.rate_limiter import RateLimiter
from modules.reminders.renderer import TemplateRenderer
from modules.reminders.retry import RetryCoordinator
from modules.reminders.scheduler import TriggerScheduler
from modules.reminders.sources import (
    AccountSettingsProvider,
    AccountSettingsStore,
    InMemoryAccountSettings,
    InMemoryTemplateSource,
    TemplateSource,
    TemplateStore,
    default_channel_config,
)
from modules.reminders.statistics import StatisticsAggregator
from modules.reminders.storage import DeliveryStore, InMemoryDeliveryStore

logger = get_module_logger()

SUPPRESSED_EVENT = "reminder.occurrence.suppressed"

StatsSnapshot = Union[TemplateStatsInfo, GroupStatsInfo, TriggerStatsInfo]


class ReminderEngine:
    """Owns every pipeline component and the periodic driver.

    Collaborators (account settings, templates, storage, channel adapters)
    are injected; in-memory defaults are used when omitted.
    """

    def __init__(
        self,
        settings: Settings,
        account_settings: Optional[AccountSettingsProvider] = None,
        templates: Optional[TemplateSource] = None,
        store: Optional[DeliveryStore] = None,
        adapters: Optional[ChannelAdapters] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        publish: Publisher = dispatch_background,
    ):
        self.settings = settings
        self._clock = clock or utcnow
        self._publish = publish

        self.account_settings = account_settings or InMemoryAccountSettings()
        self.templates = templates or InMemoryTemplateSource()
        self.store = store or InMemoryDeliveryStore()
        self.adapters = adapters or build_channel_adapters(
            settings.channels, settings.dispatch.send_timeout_seconds, clock=self._clock
        )

        self.scheduler = TriggerScheduler(clock=self._clock)
        self.gate = DoNotDisturbGate()
        self.rate_limiter = RateLimiter(clock=self._clock)
        self.statistics = StatisticsAggregator(self.store, clock=self._clock)
        self.retry = RetryCoordinator(
            RetryConfig.from_settings(settings.retry), clock=self._clock, rng=rng
        )
        self.dispatcher = ChannelDispatcher(
            self.adapters,
            self.account_settings,
            self.templates,
            self.store,
            self.statistics,
            self.retry,
            renderer=TemplateRenderer(),
            rate_limiter=self.rate_limiter,
            send_timeout_seconds=settings.dispatch.send_timeout_seconds,
            max_workers=settings.dispatch.max_workers,
            clock=self._clock,
            publish=publish,
        )
        self.retry.bind(self._redispatch)

        self._deferred: List[Tuple[datetime, int, DueEvent]] = []
        self._deferred_seq = itertools.count()
        self._deferred_lock = threading.Lock()

        self._lanes: Dict[str, Deque[Callable[[], None]]] = {}
        self._lanes_lock = threading.Lock()
        self._workers: Optional[ThreadPoolExecutor] = None
        self._retry_pump: Optional[ThreadPoolExecutor] = None
        self._retry_future: Optional[Future] = None

        self._jobs = schedule.Scheduler()
        self._stop_driver: Optional[threading.Event] = None
        self._driver: Optional[threading.Thread] = None

    # Schedule management

    def enqueue_trigger(self, trigger: ReminderTrigger) -> ReminderTrigger:
        """Start scheduling ``trigger``.

        Raises:
            InvalidScheduleError: If the schedule expression is invalid
            DuplicateTriggerError: If the id is already scheduled
        """
        stored = self.scheduler.add(trigger)
        self.store.save_trigger(stored)
        return stored

    def cancel_trigger(self, trigger_id: str) -> ReminderTrigger:
        """Deactivate a trigger. In-flight occurrences and pending retries still finish."""
        trigger = self.scheduler.remove(trigger_id)
        self.store.deactivate_trigger(trigger_id)
        return trigger

    def pause_trigger(self, trigger_id: str) -> ReminderTrigger:
        trigger = self.scheduler.pause(trigger_id)
        self.store.save_trigger(trigger)
        return trigger

    def resume_trigger(self, trigger_id: str) -> ReminderTrigger:
        trigger = self.scheduler.resume(trigger_id)
        self.store.save_trigger(trigger)
        return trigger

    def get_trigger(self, trigger_id: str) -> ReminderTrigger:
        return self.scheduler.get(trigger_id)

    def get_statistics(
        self,
        template_id: Optional[str] = None,
        group_id: Optional[str] = None,
        trigger_id: Optional[str] = None,
    ) -> StatsSnapshot:
        """Snapshot of one statistics view; exactly one id must be given."""
        given = [v for v in (template_id, group_id, trigger_id) if v is not None]
        if len(given) != 1:
            raise ValueError("exactly one of template_id, group_id, trigger_id is required")
        if template_id is not None:
            return self.statistics.get_template_stats(template_id)
        if group_id is not None:
            return self.statistics.get_group_stats(group_id)
        return self.statistics.get_trigger_stats(trigger_id)

    # Templates and account settings

    def _template_store(self) -> TemplateStore:
        if not isinstance(self.templates, TemplateStore):
            raise SettingsNotWritableError("template source")
        return self.templates

    def _settings_store(self) -> AccountSettingsStore:
        if not isinstance(self.account_settings, AccountSettingsStore):
            raise SettingsNotWritableError("account settings")
        return self.account_settings

    def put_template(self, template: NotificationTemplate) -> NotificationTemplate:
        """Create or replace a template. Pending occurrences render with it."""
        self._template_store().put(template)
        logger.info(
            "template_saved",
            template_id=template.id,
            channels=sorted(c.value for c in template.channel_contents),
        )
        return template

    def get_template(self, template_id: str) -> NotificationTemplate:
        template = self.templates.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def put_quiet_hours(self, config: DoNotDisturbConfig) -> DoNotDisturbConfig:
        """Replace an account's quiet hours; deferred events are gated again on release."""
        self._settings_store().put_dnd_config(config)
        logger.info(
            "quiet_hours_saved",
            account_id=config.account_id,
            enabled=config.enabled,
            quiet_start=config.quiet_start.isoformat(),
            quiet_end=config.quiet_end.isoformat(),
        )
        return config

    def get_quiet_hours(self, account_id: str) -> Optional[DoNotDisturbConfig]:
        return self.account_settings.get_dnd_config(account_id)

    def clear_quiet_hours(self, account_id: str) -> None:
        self._settings_store().clear_dnd_config(account_id)
        logger.info("quiet_hours_cleared", account_id=account_id)

    def put_channel_config(self, config: ChannelConfig) -> ChannelConfig:
        self._settings_store().put_channel_config(config)
        logger.info(
            "channel_config_saved",
            account_id=config.account_id,
            channel=config.channel.value,
            enabled=config.enabled,
        )
        return config

    def get_channel_config(self, account_id: str, channel: Channel) -> ChannelConfig:
        """The account's configuration for ``channel``, or the default one."""
        return self.account_settings.get_channel_config(
            account_id, channel
        ) or default_channel_config(account_id, channel)

    # Driver

    def run_pending(self, now: Optional[datetime] = None) -> int:
        """One driver cycle. Returns the number of due events handed off."""
        now = now or self._clock()
        # released events queue ahead of this tick's fires
        self._release_deferred(now)
        self.scheduler.tick(now)

        handed_off = 0
        while True:
            try:
                event = self.scheduler.due_events.get_nowait()
            except queue.Empty:
                break
            self._submit(event.trigger.id, lambda e=event: self._handle_due_event(e))
            handed_off += 1

        self._pump_retries()
        return handed_off

    def _release_deferred(self, now: datetime) -> None:
        released = []
        with self._deferred_lock:
            while self._deferred and self._deferred[0][0] <= now:
                released.append(heapq.heappop(self._deferred)[2])
        for event in released:
            logger.info(
                "deferred_reminder_released",
                trigger_id=event.trigger.id,
                fired_at=event.fired_at.isoformat(),
            )
            self.scheduler.due_events.put_nowait(event)

    def _pending_deferral(self, trigger_id: str) -> Optional[datetime]:
        """Latest release time of ``trigger_id``'s deferred events, if any."""
        with self._deferred_lock:
            pending = [
                until for until, _, event in self._deferred if event.trigger.id == trigger_id
            ]
        return max(pending) if pending else None

    def deferred_count(self) -> int:
        with self._deferred_lock:
            return len(self._deferred)

    def _submit(self, trigger_id: str, work: Callable[[], None]) -> None:
        if self._workers is None:
            self._run_safely(work)
            return
        with self._lanes_lock:
            lane = self._lanes.setdefault(trigger_id, deque())
            lane.append(work)
            if len(lane) > 1:
                return
        self._workers.submit(self._drain_lane, trigger_id)

    def _drain_lane(self, trigger_id: str) -> None:
        while True:
            with self._lanes_lock:
                work = self._lanes[trigger_id][0]
            self._run_safely(work)
            with self._lanes_lock:
                lane = self._lanes[trigger_id]
                lane.popleft()
                if not lane:
                    del self._lanes[trigger_id]
                    return

    @staticmethod
    def _run_safely(work: Callable[[], None]) -> None:
        try:
            work()
        except Exception as e:  # pylint: disable=broad-except
            logger.exception("reminder_work_failed", error=str(e))
        finally:
            clear_request_context()

    def _pump_retries(self) -> None:
        if self._retry_pump is None:
            self.retry.process_due()
            return
        if self._retry_future is not None and not self._retry_future.done():
            return
        self._retry_future = self._retry_pump.submit(self.retry.process_due)

    # Pipeline

    def _handle_due_event(self, event: DueEvent) -> List[ReminderOccurrence]:
        trigger = event.trigger
        held_until = self._pending_deferral(trigger.id)
        if held_until is not None:
            self._hold(event, held_until)
            return []

        now = self._clock()
        try:
            dnd = self.account_settings.get_dnd_config(trigger.account_id)
        except Exception as e:  # pylint: disable=broad-except
            return self._dispatch_channels(
                event, settings_unavailable("quiet hours settings", e)
            )
        gate = self.gate.evaluate(event, dnd, now)

        if gate.decision == GateDecision.DEFER_UNTIL:
            self._defer(event, gate.defer_until)
            return []

        if gate.decision == GateDecision.DELIVER_NOW_OVERRIDE:
            logger.info("quiet_hours_overridden", trigger_id=trigger.id)

        return self._dispatch_channels(event)

    def _dispatch_channels(
        self, event: DueEvent, failure: Optional[ChannelError] = None
    ) -> List[ReminderOccurrence]:
        occurrences = []
        for channel in event.trigger.channels:
            occurrence = ReminderOccurrence.from_event(event, channel)
            try:
                self.dispatcher.dispatch(occurrence, failure)
            except Exception as e:  # pylint: disable=broad-except
                logger.exception(
                    "reminder_dispatch_failed",
                    trigger_id=event.trigger.id,
                    channel=channel.value,
                    error=str(e),
                )
            occurrences.append(occurrence)
        return occurrences

    def _hold(self, event: DueEvent, until: datetime) -> None:
        """Queue ``event`` behind its trigger's deferred events.

        Quiet hours are evaluated again when it is released.
        """
        with self._deferred_lock:
            heapq.heappush(self._deferred, (until, next(self._deferred_seq), event))
        logger.info(
            "reminder_held_behind_deferral",
            trigger_id=event.trigger.id,
            fired_at=event.fired_at.isoformat(),
            release_at=until.isoformat(),
        )

    def _defer(self, event: DueEvent, until: datetime) -> None:
        trigger = event.trigger
        with self._deferred_lock:
            heapq.heappush(self._deferred, (until, next(self._deferred_seq), event))
        self.statistics.record(
            trigger.template_id, trigger.group_id, trigger.id, Outcome.SUPPRESSED
        )
        logger.info(
            "reminder_deferred",
            trigger_id=trigger.id,
            account_id=trigger.account_id,
            deferred_until=until.isoformat(),
        )
        self._publish(
            Event(
                event_type=SUPPRESSED_EVENT,
                account_id=trigger.account_id,
                message=(
                    f"reminder {trigger.id} deferred by quiet hours until "
                    f"{until.isoformat()}"
                ),
                metadata={
                    "trigger_id": trigger.id,
                    "template_id": trigger.template_id,
                    "group_id": trigger.group_id,
                    "fired_at": event.fired_at.isoformat(),
                    "deferred_until": until.isoformat(),
                },
            )
        )

    def _redispatch(self, occurrence: ReminderOccurrence) -> OccurrenceState:
        self.dispatcher.dispatch(occurrence)
        return occurrence.state

    # Lifecycle

    @property
    def running(self) -> bool:
        return self._driver is not None and self._driver.is_alive()

    def start(self) -> None:
        """Load persisted triggers and start the worker pool and driver thread."""
        if self.running:
            return

        known = {t.id for t in self.scheduler.triggers()}
        for trigger in self.store.load_active_triggers():
            if trigger.id not in known:
                self.scheduler.add(trigger)

        self._workers = ThreadPoolExecutor(
            max_workers=self.settings.scheduler.worker_count,
            thread_name_prefix="reminder-worker",
        )
        self._retry_pump = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="reminder-retry"
        )

        tick = self.settings.scheduler.tick_seconds
        self._jobs.clear()
        self._jobs.every(tick).seconds.do(self.run_pending)
        self._stop_driver = self._run_continuously(interval=tick)
        logger.info(
            "reminder_engine_started",
            tick_seconds=tick,
            worker_count=self.settings.scheduler.worker_count,
            triggers=len(self.scheduler.triggers()),
        )

    def _run_continuously(self, interval: float = 1) -> threading.Event:
        """Run pending driver jobs on a daemon thread until the event is set."""
        cease_continuous_run = threading.Event()
        jobs = self._jobs

        def loop():
            while not cease_continuous_run.is_set():
                jobs.run_pending()
                cease_continuous_run.wait(min(interval, 1))

        self._driver = threading.Thread(target=loop, name="reminder-driver", daemon=True)
        self._driver.start()
        return cease_continuous_run

    def stop(self, wait: bool = True) -> None:
        """Stop the driver and let in-flight work finish."""
        if self._stop_driver is not None:
            self._stop_driver.set()
        if self._driver is not None and wait:
            self._driver.join(timeout=self.settings.scheduler.tick_seconds + 5)
        self._jobs.clear()
        self._driver = None
        self._stop_driver = None

        for pool in (self._workers, self._retry_pump):
            if pool is not None:
                pool.shutdown(wait=wait)
        self._workers = None
        self._retry_pump = None
        self._retry_future = None
        logger.info("reminder_engine_stopped")

    def close(self) -> None:
        self.stop()
        self.dispatcher.shutdown()

    def wait_idle(self, timeout: float = 5.0) -> bool:
        """Block until no lane has queued work (test and shutdown helper)."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lanes_lock:
                if not self._lanes:
                    return True
            time.sleep(0.01)
        return False
