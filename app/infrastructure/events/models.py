"""Event models for infrastructure event system.

Provides the generic Event record dispatched to registered handlers.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """Immutable record of something that happened inside the engine.

    Reminder occurrences reaching a terminal state are published as events
    (``reminder.occurrence.delivered``, ``reminder.occurrence.failed``,
    ``reminder.occurrence.suppressed``) for observability and audit consumers.
    """

    event_type: str
    """The type of event (e.g., 'reminder.occurrence.delivered')."""

    timestamp: datetime = field(default_factory=_utcnow)
    """When the event occurred (UTC)."""

    correlation_id: UUID = field(default_factory=uuid4)
    """Unique ID to track related events across the system."""

    account_id: str = ""
    """Account the event concerns."""

    message: str = ""
    """Human readable summary."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Custom metadata for this event type."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to dictionary with ISO timestamp and string UUID."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["correlation_id"] = str(self.correlation_id)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Deserialize event from dictionary.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        try:
            timestamp = data.get("timestamp") or _utcnow()
            if isinstance(timestamp, str):
                timestamp = datetime.fromisoformat(timestamp)

            correlation_id = data.get("correlation_id") or uuid4()
            if isinstance(correlation_id, str):
                correlation_id = UUID(correlation_id)

            return cls(
                event_type=data["event_type"],
                timestamp=timestamp,
                correlation_id=correlation_id,
                account_id=data.get("account_id", ""),
                message=data.get("message", ""),
                metadata=data.get("metadata", {}),
            )
        except (KeyError, ValueError) as e:
            raise ValueError(f"Invalid event data: {e}") from e

    def __hash__(self) -> int:
        return hash((self.correlation_id, self.timestamp))
