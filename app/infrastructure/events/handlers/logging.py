"""Logging handler for event system.

Writes every dispatched event to the structured log.
"""

from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger

logger = get_module_logger()


class LoggingHandler:
    """Handles structured logging for events."""

    def __init__(self):
        self.log = logger.bind(component="event_logging_handler")

    def handle(self, event: Event) -> None:
        """Handle event by logging with structured fields.

        Failure events are logged at warning level so exhausted deliveries
        stand out from routine traffic.
        """
        log = self.log.bind(
            event_type=event.event_type,
            correlation_id=str(event.correlation_id),
            account_id=event.account_id,
        )
        level = "warning" if event.event_type.endswith(".failed") else "info"
        getattr(log, level)(
            "event_occurred",
            message=event.message,
            metadata=event.metadata,
            timestamp=event.timestamp.isoformat(),
        )


def handle_logged_event(event: Event) -> None:
    """Module-level entry point registered with the dispatcher."""
    LoggingHandler().handle(event)
