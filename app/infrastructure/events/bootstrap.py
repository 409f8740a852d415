"""Bootstrap and register infrastructure event handlers at startup.

This module registers system-level event handlers that should be active
for all event types.
"""

from infrastructure.events.dispatcher import (
    get_handlers_for_event,
    register_event_handler,
)
from infrastructure.events.handlers import handle_logged_event
from infrastructure.logging import get_module_logger

logger = get_module_logger()


def register_infrastructure_handlers() -> None:
    """Register all infrastructure event handlers.

    Registers handlers for all event types via the wildcard "*" event type.
    Calling this more than once does not register duplicates.
    """
    if handle_logged_event in get_handlers_for_event("*"):
        return
    register_event_handler("*")(handle_logged_event)
    logger.info("infrastructure_handlers_registered", handlers=["logging"])
