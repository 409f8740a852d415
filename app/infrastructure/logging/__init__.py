"""Structured logging for the reminder engine, built on structlog.

Every module takes its logger from ``get_module_logger()`` and logs
snake_case events with keyword context. ``bind_request_context`` scopes
correlation data (occurrence id, trigger, channel, HTTP path) to a block so
that everything logged inside it carries the same keys.

Example:
    from infrastructure.logging import bind_request_context, get_module_logger

    logger = get_module_logger()

    with bind_request_context(correlation_id=occurrence.id, channel="sms"):
        logger.info("reminder_delivered")
"""

from infrastructure.logging.context import (
    bind_request_context,
    clear_request_context,
    get_correlation_id,
)
from infrastructure.logging.formatters import (
    SENSITIVE_PATTERNS,
    add_app_info,
    mask_sensitive_data,
    truncate_large_values,
)
from infrastructure.logging.setup import configure_logging, get_module_logger

__all__ = [
    "configure_logging",
    "get_module_logger",
    "bind_request_context",
    "clear_request_context",
    "get_correlation_id",
    "add_app_info",
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]
