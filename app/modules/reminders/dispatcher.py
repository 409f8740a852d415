"""Channel dispatcher.

Runs one delivery attempt for one reminder occurrence:

    channel config check -> render -> rate check -> send (bounded) -> classify

Every call appends exactly one DeliveryAttempt to storage and records exactly
one statistics outcome: DELIVERED on success, RETRYING when another attempt
was scheduled, FAILED when the occurrence is terminally failed. Terminal
states are also published as events.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as SendTimeout
from typing import Any, Callable, Optional

from infrastructure.events import Event, dispatch_background
from infrastructure.logging import bind_request_context, get_module_logger
from modules.reminders.channels import ChannelAdapters, SendOutcome
from modules.reminders.clock import Clock, utcnow
from modules.reminders.errors import RenderError
from modules.reminders.models import (
    ChannelError,
    ChannelResponse,
    DeliveryAttempt,
    ErrorCode,
    OccurrenceState,
    OutboundMessage,
    Outcome,
    ReminderOccurrence,
)
from modules.reminders.rate_limiter import RateLimiter
from modules.reminders.renderer import TemplateRenderer
from modules.reminders.retry import RetryCoordinator
from modules.reminders.sources import (
    AccountSettingsProvider,
    TemplateSource,
    default_channel_config,
)
from modules.reminders.statistics import StatisticsAggregator
from modules.reminders.storage import DeliveryStore

logger = get_module_logger()

Publisher = Callable[[Event], Any]

DELIVERED_EVENT = "reminder.occurrence.delivered"
FAILED_EVENT = "reminder.occurrence.failed"


def failure_message(occurrence: ReminderOccurrence, reason: str) -> str:
    return (
        f"reminder {occurrence.trigger_id} failed to deliver via channel "
        f"{occurrence.channel.value} after {occurrence.attempt_number} "
        f"attempts: {reason}"
    )


def settings_unavailable(what: str, error: Exception) -> ChannelError:
    """Retryable outcome for a settings or template lookup that raised."""
    logger.exception("reminder_lookup_failed", lookup=what, error=str(error))
    return ChannelError(
        code=ErrorCode.SETTINGS_UNAVAILABLE.value,
        message=f"{what} lookup failed: {type(error).__name__}: {error}",
        retryable=True,
    )


class ChannelDispatcher:
    def __init__(
        self,
        adapters: ChannelAdapters,
        account_settings: AccountSettingsProvider,
        templates: TemplateSource,
        store: DeliveryStore,
        statistics: StatisticsAggregator,
        retry: RetryCoordinator,
        renderer: Optional[TemplateRenderer] = None,
        rate_limiter: Optional[RateLimiter] = None,
        send_timeout_seconds: float = 10.0,
        max_workers: int = 8,
        clock: Optional[Clock] = None,
        publish: Publisher = dispatch_background,
    ):
        self._adapters = adapters
        self._account_settings = account_settings
        self._templates = templates
        self._store = store
        self._statistics = statistics
        self._retry = retry
        self._renderer = renderer or TemplateRenderer()
        self._clock = clock or utcnow
        self._rate_limiter = rate_limiter or RateLimiter(self._clock)
        self._send_timeout = send_timeout_seconds
        self._send_pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="channel-send"
        )
        self._publish = publish

    def dispatch(
        self,
        occurrence: ReminderOccurrence,
        failure: Optional[ChannelError] = None,
    ) -> DeliveryAttempt:
        """Make the next delivery attempt for ``occurrence``.

        ``occurrence.attempt_number`` and ``occurrence.state`` are advanced in
        place; the returned attempt carries ``next_retry_at`` when a retry was
        scheduled. A ``failure`` given by the caller is recorded as this
        attempt's outcome without contacting the channel.
        """
        occurrence.attempt_number += 1
        started_at = self._clock()

        with bind_request_context(
            correlation_id=occurrence.id,
            account_id=occurrence.account_id,
            trigger_id=occurrence.trigger_id,
            channel=occurrence.channel.value,
            attempt_number=occurrence.attempt_number,
        ):
            outcome = failure or self._attempt(occurrence)
            attempt = DeliveryAttempt(
                occurrence_id=occurrence.id,
                trigger_id=occurrence.trigger_id,
                channel=occurrence.channel,
                attempt_number=occurrence.attempt_number,
                started_at=started_at,
                outcome=outcome,
            )

            if isinstance(outcome, ChannelResponse):
                occurrence.state = OccurrenceState.SUCCEEDED
                stats_outcome = Outcome.DELIVERED
            else:
                decision = self._retry.schedule_retry(occurrence, attempt)
                occurrence.state = decision.state
                if decision.state == OccurrenceState.RETRY_PENDING:
                    attempt = attempt.model_copy(
                        update={"next_retry_at": decision.next_retry_at}
                    )
                    stats_outcome = Outcome.RETRYING
                else:
                    stats_outcome = Outcome.FAILED

            self._store.append(attempt)
            self._statistics.record(
                occurrence.template_id,
                occurrence.group_id,
                occurrence.trigger_id,
                stats_outcome,
                at=self._clock(),
            )
            self._log_and_publish(occurrence, attempt)

        return attempt

    def _attempt(self, occurrence: ReminderOccurrence) -> SendOutcome:
        occurrence.state = OccurrenceState.RENDERING
        try:
            config = self._account_settings.get_channel_config(
                occurrence.account_id, occurrence.channel
            ) or default_channel_config(occurrence.account_id, occurrence.channel)
        except Exception as e:  # pylint: disable=broad-except
            return settings_unavailable("channel settings", e)
        if not config.enabled:
            return ChannelError(
                code=ErrorCode.CHANNEL_DISABLED.value,
                message=f"channel {occurrence.channel.value} is disabled for the account",
                retryable=False,
            )

        try:
            template = self._templates.get_template(occurrence.template_id)
        except Exception as e:  # pylint: disable=broad-except
            return settings_unavailable("template", e)
        if template is None:
            return ChannelError(
                code=ErrorCode.TEMPLATE_NOT_FOUND.value,
                message=f"template {occurrence.template_id} not found",
                retryable=False,
            )

        try:
            content = self._renderer.render(
                template, occurrence.channel, occurrence.variables
            )
        except RenderError as e:
            logger.warning(
                "reminder_render_failed",
                template_id=e.template_id,
                slot=e.slot,
                kind=e.kind.value,
            )
            return ChannelError(code=e.kind.value, message=str(e), retryable=False)

        recipient = config.address
        if not recipient:
            return ChannelError(
                code=ErrorCode.NO_RECIPIENT.value,
                message=f"no {occurrence.channel.value} address configured",
                retryable=False,
            )

        occurrence.state = OccurrenceState.RATE_CHECK
        decision = self._rate_limiter.try_acquire(
            occurrence.account_id, occurrence.channel, config.rate_limit_policy
        )
        if not decision.allowed:
            return ChannelError(
                code=ErrorCode.RATE_LIMITED.value,
                message="rate limit exceeded",
                retryable=True,
                retry_after=decision.retry_after,
            )

        occurrence.state = OccurrenceState.SENDING
        message = OutboundMessage(
            occurrence_id=occurrence.id,
            account_id=occurrence.account_id,
            recipient=recipient,
            content=content,
        )
        return self._send(occurrence, message)

    def _send(self, occurrence: ReminderOccurrence, message: OutboundMessage) -> SendOutcome:
        adapter = self._adapters.get(occurrence.channel)
        if adapter is None:
            return ChannelError(
                code=ErrorCode.UNSUPPORTED_CHANNEL.value,
                message=f"no adapter for channel {occurrence.channel.value}",
                retryable=False,
            )

        started = threading.Event()

        def send() -> SendOutcome:
            started.set()
            return adapter.send(message)

        # the timeout covers the send itself, not the wait for a free sender
        future = self._send_pool.submit(send)
        if not started.wait(self._send_timeout) and future.cancel():
            logger.warning("channel_send_pool_busy", wait_seconds=self._send_timeout)
            return ChannelError(
                code=ErrorCode.CHANNEL_BUSY.value,
                message=(
                    f"no {occurrence.channel.value} sender free after "
                    f"{self._send_timeout}s"
                ),
                retryable=True,
            )
        try:
            return future.result(timeout=self._send_timeout)
        except SendTimeout:
            future.cancel()
            logger.warning("channel_send_timed_out", timeout_seconds=self._send_timeout)
            return ChannelError(
                code=ErrorCode.TIMEOUT.value,
                message=f"send timed out after {self._send_timeout}s",
                retryable=True,
            )
        except Exception as e:  # pylint: disable=broad-except
            logger.exception("channel_adapter_raised", error=str(e))
            return ChannelError(
                code=ErrorCode.ADAPTER_EXCEPTION.value,
                message=f"{type(e).__name__}: {e}",
                retryable=True,
            )

    def _log_and_publish(
        self, occurrence: ReminderOccurrence, attempt: DeliveryAttempt
    ) -> None:
        if occurrence.state == OccurrenceState.SUCCEEDED:
            logger.info("reminder_delivered")
            self._publish(
                Event(
                    event_type=DELIVERED_EVENT,
                    account_id=occurrence.account_id,
                    message=(
                        f"reminder {occurrence.trigger_id} delivered via channel "
                        f"{occurrence.channel.value}"
                    ),
                    metadata=self._event_metadata(occurrence, attempt),
                )
            )
            return

        outcome = attempt.outcome
        if occurrence.state == OccurrenceState.RETRY_PENDING:
            logger.info(
                "reminder_retry_pending",
                error_code=outcome.code,
                next_retry_at=attempt.next_retry_at.isoformat(),
            )
            return

        message = failure_message(occurrence, outcome.message)
        logger.warning("reminder_failed", error_code=outcome.code, reason=message)
        self._publish(
            Event(
                event_type=FAILED_EVENT,
                account_id=occurrence.account_id,
                message=message,
                metadata={
                    **self._event_metadata(occurrence, attempt),
                    "error_code": outcome.code,
                },
            )
        )

    @staticmethod
    def _event_metadata(occurrence: ReminderOccurrence, attempt: DeliveryAttempt) -> dict:
        return {
            "occurrence_id": occurrence.id,
            "trigger_id": occurrence.trigger_id,
            "template_id": occurrence.template_id,
            "group_id": occurrence.group_id,
            "channel": occurrence.channel.value,
            "attempt_number": attempt.attempt_number,
        }

    def shutdown(self, wait: bool = True) -> None:
        self._send_pool.shutdown(wait=wait)
