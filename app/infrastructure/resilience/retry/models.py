"""Retry models.

Core data structures of the retry queue. Records are generic: the owning
module stores whatever it needs to re-run the operation in ``payload``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class RetryResult(Enum):
    """Outcome of processing a retry record.

    Values:
        SUCCESS: Operation completed successfully, remove from queue
        RETRY: Operation failed again and was rescheduled
        PERMANENT_FAILURE: Operation failed permanently, move to DLQ
    """

    SUCCESS = "success"
    RETRY = "retry"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass
class RetryRecord:
    """A pending retry of one failed operation.

    Fields:
        operation_type: Namespace identifier (e.g., "reminders.occurrence.dispatch")
        payload: Module-specific data needed to re-run the operation
        id: Record key. Callers may supply a natural key (such as an
            occurrence id) so a second save for the same key reschedules the
            existing record instead of queueing a duplicate.
        attempts: Number of attempts already made
        last_error: Last error message encountered
        next_retry_at: When the record becomes due

    Example:
        record = RetryRecord(
            operation_type="reminders.occurrence.dispatch",
            payload={"occurrence": occurrence.model_dump(mode="json")},
            id=occurrence.id,
            attempts=1,
            next_retry_at=now + timedelta(seconds=1),
        )
    """

    operation_type: str
    payload: Dict[str, Any]

    id: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    next_retry_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.operation_type:
            raise ValueError("operation_type is required")
        if not isinstance(self.payload, dict):
            raise ValueError("payload must be a dictionary")
