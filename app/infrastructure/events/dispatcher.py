"""Event dispatcher for infrastructure event system.

Provides centralized event dispatcher with in-process handler registry.
Handlers are registered with decorators and called synchronously when
events are dispatched. Handlers registered under ``"*"`` receive every event.
"""

import atexit
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger

logger = get_module_logger()

WILDCARD = "*"

# Event handler registry: event_type -> list of handlers
EVENT_HANDLERS: Dict[str, List[Callable]] = {}
_handlers_lock = Lock()

# Managed executor for background dispatches
_EXECUTOR: Optional[ThreadPoolExecutor] = None
_executor_lock = Lock()
_executor_shutdown = False


def register_event_handler(event_type: str):
    """Decorator to register an event handler for a specific event type.

    Args:
        event_type: The type of event to handle (e.g.,
            'reminder.occurrence.failed'), or "*" for all events.

    Returns:
        Decorator function that registers the handler.
    """

    def decorator(handler_func: Callable) -> Callable:
        with _handlers_lock:
            EVENT_HANDLERS.setdefault(event_type, []).append(handler_func)
            total = len(EVENT_HANDLERS[event_type])
        logger.debug(
            "registered_event_handler",
            handler=getattr(handler_func, "__name__", "unknown"),
            event_type=event_type,
            total_handlers=total,
        )
        return handler_func

    return decorator


def dispatch_event(event: Event) -> List[Any]:
    """Dispatch event synchronously to all registered handlers.

    Handlers for the exact event type run first, then wildcard handlers. If
    a handler raises an exception, it is logged and processing continues
    with the remaining handlers.

    Returns:
        List of return values from the handlers that completed.
    """
    with _handlers_lock:
        handlers = list(EVENT_HANDLERS.get(event.event_type, []))
        handlers += EVENT_HANDLERS.get(WILDCARD, [])

    logger.debug(
        "dispatching_event",
        event_type=event.event_type,
        handler_count=len(handlers),
        correlation_id=str(event.correlation_id),
    )

    results = []
    for handler in handlers:
        try:
            results.append(handler(event))
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "event_handler_failed",
                handler=getattr(handler, "__name__", "unknown"),
                event_type=event.event_type,
                error=str(e),
                correlation_id=str(event.correlation_id),
            )

    return results


def _background_worker(evt: Event) -> None:
    try:
        dispatch_event(evt)
    except Exception as e:  # pylint: disable=broad-except
        logger.exception(
            "background_event_dispatch_failed",
            event_type=evt.event_type,
            error=str(e),
            correlation_id=str(evt.correlation_id),
        )


def _get_or_create_executor(max_workers: int = 4) -> Optional[ThreadPoolExecutor]:
    """Lazily create the module-scoped executor.

    Returns None when the executor has been explicitly shut down.
    """
    global _EXECUTOR
    with _executor_lock:
        if _executor_shutdown:
            return None
        if _EXECUTOR is None:
            _EXECUTOR = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="events"
            )
            logger.debug("created_background_event_executor", max_workers=max_workers)
        return _EXECUTOR


def start_event_executor(max_workers: int = 4) -> None:
    """Start (or restart after shutdown) the background executor."""
    global _executor_shutdown
    with _executor_lock:
        _executor_shutdown = False
    _get_or_create_executor(max_workers=max_workers)


def shutdown_event_executor(wait: bool = True) -> None:
    """Shut down the background executor and prevent further submissions.

    Idempotent; safe to call multiple times.
    """
    global _EXECUTOR, _executor_shutdown
    with _executor_lock:
        executor, _EXECUTOR = _EXECUTOR, None
        _executor_shutdown = True
    if executor is not None:
        executor.shutdown(wait=wait)
        logger.debug("background_event_executor_shut_down", wait=wait)


atexit.register(shutdown_event_executor, wait=False)


def dispatch_background(event: Event) -> None:
    """Submit event dispatch to the internal executor (fire-and-forget).

    Handler exceptions are logged inside the worker. When the executor has
    been shut down the event is dispatched synchronously instead, so terminal
    occurrence events are never lost during shutdown.
    """
    executor = _get_or_create_executor()
    if executor is None:
        logger.warning(
            "event_executor_unavailable_dispatching_inline",
            event_type=event.event_type,
            correlation_id=str(event.correlation_id),
        )
        _background_worker(event)
        return
    executor.submit(_background_worker, event)


def get_registered_events() -> List[str]:
    """Get list of all registered event types."""
    with _handlers_lock:
        return list(EVENT_HANDLERS.keys())


def get_handlers_for_event(event_type: str) -> List[Callable]:
    """Get all handlers registered for a specific event type."""
    with _handlers_lock:
        return list(EVENT_HANDLERS.get(event_type, []))


def clear_handlers() -> None:
    """Clear all registered handlers.

    WARNING: This is intended for testing only.
    """
    with _handlers_lock:
        EVENT_HANDLERS.clear()
    logger.debug("cleared_all_event_handlers")
