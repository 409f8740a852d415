"""Retry record storage.

This module provides the storage interface for retry records and its
in-memory implementation. The protocol-based design allows other backends
(Redis, a database table) to be plugged in without touching the worker.
"""

import itertools
import random
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry.config import RetryConfig, compute_backoff_delay
from infrastructure.resilience.retry.models import RetryRecord

logger = get_module_logger()

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetryStore(Protocol):
    """Storage interface for retry records.

    Implementations must provide atomic claim semantics so a due record is
    handed to exactly one worker, and must keep at most one pending record
    per key.

    Methods:
        save: Persist a record (or reschedule the existing record with the same id)
        get: Return the pending record with the given id, if any
        fetch_due: Return records that are due and not claimed
        claim_record: Attempt to claim a record for processing
        release_claim: Drop a claim without changing the record
        mark_success: Remove successfully processed record from queue
        mark_permanent_failure: Move record to dead letter queue
        increment_attempt: Increment attempt counter and reschedule with backoff
    """

    def save(self, record: RetryRecord) -> str:
        ...

    def get(self, record_id: str) -> Optional[RetryRecord]:
        ...

    def fetch_due(self, limit: int = 100) -> List[RetryRecord]:
        ...

    def claim_record(self, record_id: str, worker_id: str, lease_seconds: int) -> bool:
        ...

    def release_claim(self, record_id: str) -> None:
        ...

    def mark_success(self, record_id: str) -> None:
        ...

    def mark_permanent_failure(self, record_id: str, reason: str) -> None:
        ...

    def increment_attempt(self, record_id: str, last_error: str | None = None) -> None:
        ...


class InMemoryRetryStore:
    """Thread-safe in-memory implementation of RetryStore.

    Supports:
    - Caller supplied keys with upsert semantics (one pending record per key)
    - Jittered exponential backoff for unhandled processing failures
    - Dead letter queue for permanent failures
    - Claim-based processing with expiring leases

    Attributes:
        config: RetryConfig controlling retry behavior
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store: Dict[str, RetryRecord] = {}
        self._claims: Dict[str, Dict[str, Any]] = {}
        self._dlq: Dict[str, RetryRecord] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._clock = clock or _utcnow
        self._rng = rng

        self.config = config or RetryConfig()

    def save(self, record: RetryRecord) -> str:
        """Save a record, replacing the pending record with the same id.

        Saving also releases any claim on the id, so a worker that reschedules
        the record it is processing makes it eligible again at the new time.
        """
        with self._lock:
            now = self._clock()
            if record.id is None:
                record.id = str(next(self._ids))
            existing = self._store.get(record.id)
            if existing is not None:
                record.created_at = existing.created_at
            else:
                record.created_at = now
            record.updated_at = now
            if record.next_retry_at is None:
                record.next_retry_at = now
            self._store[record.id] = record
            self._claims.pop(record.id, None)

            logger.debug(
                "retry_record_saved",
                record_id=record.id,
                operation_type=record.operation_type,
                attempts=record.attempts,
                next_retry_at=record.next_retry_at.isoformat(),
                replaced=existing is not None,
            )
            return record.id

    def get(self, record_id: str) -> Optional[RetryRecord]:
        with self._lock:
            return self._store.get(record_id)

    def fetch_due(self, limit: int = 100) -> List[RetryRecord]:
        """Return unclaimed records whose retry time has passed, earliest first."""
        with self._lock:
            now = self._clock()
            due = []

            for record_id, record in self._store.items():
                claim = self._claims.get(record_id)
                if claim is not None:
                    if claim["expires_at"] > now:
                        continue
                    del self._claims[record_id]
                    logger.debug(
                        "retry_claim_expired",
                        record_id=record_id,
                        worker=claim["worker"],
                    )

                if record.next_retry_at and record.next_retry_at <= now:
                    due.append(record)

            due.sort(key=lambda r: (r.next_retry_at, r.id))
            logger.debug(
                "fetched_due_retry_records",
                count=min(len(due), limit),
                total_store_size=len(self._store),
            )
            return due[:limit]

    def claim_record(self, record_id: str, worker_id: str, lease_seconds: int) -> bool:
        """Claim a record for processing."""
        with self._lock:
            if record_id not in self._store:
                logger.warning("retry_claim_failed_not_found", record_id=record_id)
                return False

            now = self._clock()
            claim = self._claims.get(record_id)
            if claim is not None and claim["expires_at"] > now:
                logger.debug(
                    "retry_claim_failed_already_claimed",
                    record_id=record_id,
                    current_worker=claim["worker"],
                )
                return False

            self._claims[record_id] = {
                "worker": worker_id,
                "expires_at": now + timedelta(seconds=lease_seconds),
            }
            logger.debug("retry_record_claimed", record_id=record_id, worker=worker_id)
            return True

    def release_claim(self, record_id: str) -> None:
        with self._lock:
            self._claims.pop(record_id, None)

    def mark_success(self, record_id: str) -> None:
        """Remove successfully processed record from queue."""
        with self._lock:
            record = self._store.pop(record_id, None)
            self._claims.pop(record_id, None)
            if record is not None:
                logger.info(
                    "retry_success",
                    record_id=record_id,
                    operation_type=record.operation_type,
                    attempts=record.attempts,
                )

    def mark_permanent_failure(self, record_id: str, reason: str) -> None:
        """Move record to dead letter queue."""
        with self._lock:
            self._mark_permanent_failure_locked(record_id, reason)

    def _mark_permanent_failure_locked(self, record_id: str, reason: str) -> None:
        rec = self._store.pop(record_id, None)
        self._claims.pop(record_id, None)
        if rec is None:
            return

        rec.last_error = reason
        rec.updated_at = self._clock()
        self._dlq[record_id] = rec

        logger.warning(
            "retry_permanent_failure",
            record_id=record_id,
            operation_type=rec.operation_type,
            attempts=rec.attempts,
            reason=reason,
        )

    def increment_attempt(self, record_id: str, last_error: str | None = None) -> None:
        """Increment attempt counter, rescheduling or dead-lettering the record."""
        with self._lock:
            rec = self._store.get(record_id)
            if not rec:
                logger.warning("retry_increment_failed_not_found", record_id=record_id)
                return

            rec.attempts += 1
            rec.last_error = last_error
            rec.updated_at = self._clock()

            if rec.attempts >= self.config.max_attempts:
                self._mark_permanent_failure_locked(
                    record_id,
                    f"Max retries ({self.config.max_attempts}) exceeded: {last_error}",
                )
                return

            retry_delay = compute_backoff_delay(rec.attempts, self.config, self._rng)
            rec.next_retry_at = rec.updated_at + timedelta(seconds=retry_delay)
            self._claims.pop(record_id, None)

            logger.info(
                "retry_scheduled",
                record_id=record_id,
                operation_type=rec.operation_type,
                attempts=rec.attempts,
                max_attempts=self.config.max_attempts,
                next_retry_in_seconds=round(retry_delay, 3),
            )

    def get_dlq_entries(self) -> List[RetryRecord]:
        """Get all dead letter queue entries (for monitoring)."""
        with self._lock:
            return list(self._dlq.values())

    def get_stats(self) -> dict:
        """Counts of active, claimed, and DLQ records."""
        with self._lock:
            return {
                "active_records": len(self._store),
                "claimed_records": len(self._claims),
                "dlq_records": len(self._dlq),
            }
