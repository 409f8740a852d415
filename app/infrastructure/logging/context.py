"""Context binding for structured logging.

This module provides utilities for binding scoped context to logs, so that
correlation IDs and occurrence metadata flow through every log entry emitted
while a reminder occurrence (or an API request) is being processed.

Usage:
    from infrastructure.logging import bind_request_context

    with bind_request_context(correlation_id=occurrence.id, trigger_id="t-1"):
        # All logs within this block will include the context
        logger.info("reminder_dispatched")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Optional, Any, Generator
import structlog


@contextmanager
def bind_request_context(
    correlation_id: Optional[str] = None,
    account_id: Optional[str] = None,
    request_path: Optional[str] = None,
    request_method: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind scoped context to all logs within the context manager.

    Args:
        correlation_id: Unique identifier for the unit of work. Auto-generated
            if not provided.
        account_id: Account the work belongs to (if known).
        request_path: HTTP request path (e.g., "/api/v1/reminders/triggers").
        request_method: HTTP method (e.g., "GET", "POST").
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        None - context is automatically bound to structlog's context vars.

    Example:
        # Around one reminder occurrence
        with bind_request_context(
            correlation_id=occurrence.id,
            account_id=occurrence.account_id,
            trigger_id=occurrence.trigger_id,
            channel=occurrence.channel.value,
        ):
            dispatcher.dispatch(occurrence)

        # In a FastAPI middleware
        @app.middleware("http")
        async def logging_middleware(request: Request, call_next):
            with bind_request_context(
                correlation_id=request.headers.get("X-Correlation-ID"),
                request_path=request.url.path,
                request_method=request.method,
            ):
                return await call_next(request)
    """
    # Build context dict with only non-None values
    context: dict[str, Any] = {}

    # Use provided correlation_id or generate one
    context["correlation_id"] = correlation_id or str(uuid.uuid4())

    if account_id is not None:
        context["account_id"] = account_id

    if request_path is not None:
        context["request_path"] = request_path

    if request_method is not None:
        context["request_method"] = request_method

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_request_context() -> None:
    """Clear all scoped context from the logging context.

    Worker threads call this between units of work to prevent context
    leaking from one occurrence into the next.
    """
    structlog.contextvars.clear_contextvars()
