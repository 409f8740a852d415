"""Event handlers for infrastructure event system."""

from infrastructure.events.handlers.logging import LoggingHandler, handle_logged_event

__all__ = ["LoggingHandler", "handle_logged_event"]
