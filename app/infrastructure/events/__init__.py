"""Infrastructure event system - centralized event dispatcher.

The event system provides a lightweight, in-process event dispatcher
used to publish terminal reminder occurrence states to audit and
observability consumers.

Usage:

    from infrastructure.events import Event, register_event_handler, dispatch_event

    @register_event_handler("reminder.occurrence.failed")
    def page_on_failure(event: Event) -> None:
        ...

    dispatch_event(
        Event(
            event_type="reminder.occurrence.failed",
            account_id="acct-1",
            metadata={"trigger_id": "t-1", "channel": "email"},
        )
    )

    # Or dispatch in background
    from infrastructure.events import dispatch_background
    dispatch_background(event)
"""

from infrastructure.events.bootstrap import register_infrastructure_handlers
from infrastructure.events.dispatcher import (
    clear_handlers,
    dispatch_background,
    dispatch_event,
    get_handlers_for_event,
    get_registered_events,
    register_event_handler,
    shutdown_event_executor,
    start_event_executor,
)
from infrastructure.events.models import Event

__all__ = [
    "Event",
    "clear_handlers",
    "dispatch_event",
    "dispatch_background",
    "register_event_handler",
    "register_infrastructure_handlers",
    "get_registered_events",
    "get_handlers_for_event",
    "start_event_executor",
    "shutdown_event_executor",
]
