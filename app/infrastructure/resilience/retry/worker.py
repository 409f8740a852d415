"""Retry worker and processor protocol.

This module provides the worker infrastructure for processing retry records.
Module-specific retry logic is implemented via the RetryProcessor protocol.
"""

from typing import Dict, Protocol

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import RetryRecord, RetryResult
from infrastructure.resilience.retry.store import RetryStore

logger = get_module_logger()


class RetryProcessor(Protocol):
    """Protocol for module-specific retry processing logic.

    A processor that returns ``RetryResult.RETRY`` is expected to have saved
    the record again with its new ``next_retry_at``; the worker only drops
    its claim.

    Example:
        class OccurrenceRetryProcessor:
            def process_record(self, record: RetryRecord) -> RetryResult:
                occurrence = ReminderOccurrence.model_validate(
                    record.payload["occurrence"]
                )
                state = redispatch(occurrence)
                if state is OccurrenceState.SUCCEEDED:
                    return RetryResult.SUCCESS
                ...
    """

    def process_record(self, record: RetryRecord) -> RetryResult:
        ...


class RetryWorker:
    """Worker that processes batches of due retry records.

    Handles the mechanics of retry processing:
    - Fetching due records from the store
    - Claiming records so each scheduled retry runs exactly once
    - Delegating to a RetryProcessor for actual processing
    - Updating store based on results

    Attributes:
        store: RetryStore holding pending records
        processor: RetryProcessor for module-specific processing logic
        config: RetryConfig controlling batch size and claim lease
        worker_id: Identifier for this worker instance
    """

    def __init__(
        self,
        store: RetryStore,
        processor: RetryProcessor,
        config: RetryConfig | None = None,
        worker_id: str = "retry-worker-1",
    ) -> None:
        self.store = store
        self.processor = processor
        self.config = config or RetryConfig()
        self.worker_id = worker_id
        self.log = logger.bind(worker_id=worker_id)

    def process_batch(self) -> Dict[str, int]:
        """Process one batch of due retry records.

        Safe to call repeatedly; records claimed by another worker are skipped.

        Returns:
            Dictionary with processing statistics:
                - processed: Number of records processed
                - successful: Number of successful retries
                - retried: Number of records re-scheduled for retry
                - permanent_failures: Number moved to DLQ
                - skipped: Number that couldn't be claimed
        """
        stats = {
            "processed": 0,
            "successful": 0,
            "retried": 0,
            "permanent_failures": 0,
            "skipped": 0,
        }

        records = self.store.fetch_due(limit=self.config.batch_size)
        if not records:
            return stats

        self.log.info("retry_batch_start", record_count=len(records))

        for record in records:
            if not self.store.claim_record(
                record.id,  # type: ignore
                self.worker_id,
                self.config.claim_lease_seconds,
            ):
                self.log.debug("retry_record_skipped_claim_failed", record_id=record.id)
                stats["skipped"] += 1
                continue

            result = self._process_record(record)
            stats["processed"] += 1

            if result == RetryResult.SUCCESS:
                stats["successful"] += 1
            elif result == RetryResult.RETRY:
                stats["retried"] += 1
            elif result == RetryResult.PERMANENT_FAILURE:
                stats["permanent_failures"] += 1

        self.log.info("retry_batch_complete", **stats)
        return stats

    def _process_record(self, record: RetryRecord) -> RetryResult:
        self.log.debug(
            "retry_record_processing",
            record_id=record.id,
            operation_type=record.operation_type,
            attempt=record.attempts + 1,
        )

        try:
            result = self.processor.process_record(record)
        except Exception as e:  # pylint: disable=broad-except
            self.log.error(
                "retry_processor_exception",
                record_id=record.id,
                operation_type=record.operation_type,
                error=str(e),
                exc_info=True,
            )
            self.store.increment_attempt(
                record.id, last_error=f"Processor exception: {str(e)}"  # type: ignore
            )
            return RetryResult.RETRY

        if result == RetryResult.SUCCESS:
            self.store.mark_success(record.id)  # type: ignore
        elif result == RetryResult.PERMANENT_FAILURE:
            self.store.mark_permanent_failure(
                record.id,  # type: ignore
                reason=record.last_error or "Processor returned permanent failure",
            )
        elif result == RetryResult.RETRY:
            self.store.release_claim(record.id)  # type: ignore

        return result
