"""Retry coordination for failed deliveries.

Wraps the generic retry queue from ``infrastructure.resilience.retry``:
retryable failures are saved as records keyed by occurrence id (one pending
retry per occurrence), and every due record is claimed and handed back to the
dispatcher exactly once.
"""

import random
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry import (
    InMemoryRetryStore,
    RetryConfig,
    RetryRecord,
    RetryResult,
    RetryStore,
    RetryWorker,
    compute_backoff_delay,
)
from modules.reminders.clock import Clock, utcnow
from modules.reminders.models import (
    ChannelError,
    DeliveryAttempt,
    OccurrenceState,
    ReminderOccurrence,
)

logger = get_module_logger()

OPERATION_TYPE = "reminders.occurrence.dispatch"

Redispatch = Callable[[ReminderOccurrence], OccurrenceState]


class RetryDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: OccurrenceState
    next_retry_at: Optional[datetime] = None
    reason: Optional[str] = None


class RetryCoordinator:
    """Decides between another attempt and terminal failure.

    ``bind`` wires the callable that re-runs an occurrence through the
    dispatcher; the engine binds it at construction time.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        store: Optional[RetryStore] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or RetryConfig()
        self._clock = clock or utcnow
        self._rng = rng
        self.store = store or InMemoryRetryStore(self.config, clock=self._clock, rng=rng)
        self.worker = RetryWorker(
            self.store, self, self.config, worker_id="reminder-retry-worker"
        )
        self._redispatch: Optional[Redispatch] = None

    def bind(self, redispatch: Redispatch) -> None:
        self._redispatch = redispatch

    def backoff_until(self, attempt: DeliveryAttempt, now: datetime) -> datetime:
        """Jittered exponential backoff, pushed out to a later rate-limit ``retry_after``."""
        delay = compute_backoff_delay(attempt.attempt_number, self.config, self._rng)
        next_at = now + timedelta(seconds=delay)
        outcome = attempt.outcome
        if isinstance(outcome, ChannelError) and outcome.retry_after is not None:
            next_at = max(next_at, outcome.retry_after)
        return next_at

    def schedule_retry(
        self, occurrence: ReminderOccurrence, attempt: DeliveryAttempt
    ) -> RetryDecision:
        """Queue another attempt for ``occurrence`` or declare it terminally failed.

        A retry is scheduled only for a retryable error when
        ``attempt.attempt_number < max_attempts``.
        """
        outcome = attempt.outcome
        if not isinstance(outcome, ChannelError):
            raise ValueError("schedule_retry requires a failed attempt")

        if not outcome.retryable:
            return RetryDecision(
                state=OccurrenceState.FAILED_TERMINAL, reason=outcome.message
            )

        if attempt.attempt_number >= self.config.max_attempts:
            logger.warning(
                "retry_attempts_exhausted",
                occurrence_id=occurrence.id,
                attempt_number=attempt.attempt_number,
                max_attempts=self.config.max_attempts,
            )
            return RetryDecision(
                state=OccurrenceState.FAILED_TERMINAL, reason=outcome.message
            )

        next_retry_at = self.backoff_until(attempt, self._clock())
        pending = occurrence.model_copy(
            update={
                "attempt_number": attempt.attempt_number,
                "state": OccurrenceState.RETRY_PENDING,
            }
        )
        self.store.save(
            RetryRecord(
                operation_type=OPERATION_TYPE,
                payload={"occurrence": pending.model_dump(mode="json")},
                id=occurrence.id,
                attempts=attempt.attempt_number,
                last_error=f"{outcome.code}: {outcome.message}",
                next_retry_at=next_retry_at,
            )
        )
        logger.info(
            "retry_scheduled",
            occurrence_id=occurrence.id,
            attempt_number=attempt.attempt_number,
            error_code=outcome.code,
            next_retry_at=next_retry_at.isoformat(),
        )
        return RetryDecision(
            state=OccurrenceState.RETRY_PENDING,
            next_retry_at=next_retry_at,
            reason=outcome.message,
        )

    def process_record(self, record: RetryRecord) -> RetryResult:
        """RetryProcessor hook: re-run one claimed occurrence."""
        if self._redispatch is None:
            raise RuntimeError("RetryCoordinator is not bound to a dispatcher")

        occurrence = ReminderOccurrence.model_validate(record.payload["occurrence"])
        state = self._redispatch(occurrence)
        if state == OccurrenceState.SUCCEEDED:
            return RetryResult.SUCCESS
        if state == OccurrenceState.RETRY_PENDING:
            return RetryResult.RETRY
        return RetryResult.PERMANENT_FAILURE

    def process_due(self) -> Dict[str, int]:
        """Run every retry whose time has come."""
        return self.worker.process_batch()

    def has_pending(self, occurrence_id: str) -> bool:
        return self.store.get(occurrence_id) is not None
