"""structlog processors applied to every log entry.

- add_app_info: stamps the service name and build
- mask_sensitive_data: redacts credentials and recipient addresses
- truncate_large_values: caps long strings such as rendered bodies
"""

from typing import Any, Callable

Processor = Callable[[Any, str, dict[str, Any]], dict[str, Any]]

# Key fragments whose values never reach the logs. Recipient addresses
# (emails, phone numbers, device tokens) are personal data.
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "bearer",
        "token",
        "recipient",
        "address",
        "phone",
    }
)

# Keys that contain a sensitive fragment but carry no sensitive value
SAFE_KEYS = frozenset({"error_code"})


def add_app_info(app_name: str, app_version: str = "unknown") -> Processor:
    """Processor adding ``app_name`` and ``app_version`` to each entry."""

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["app_name"] = app_name
        event_dict["app_version"] = app_version
        return event_dict

    return processor


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
) -> Processor:
    """Processor replacing values of sensitive keys (case-insensitive substring match).

    Example:
        mask_sensitive_data(additional_patterns=frozenset({"webhook_url"}))
    """
    patterns = SENSITIVE_PATTERNS | (additional_patterns or frozenset())

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if value is None or key in SAFE_KEYS:
                continue
            key_lower = key.lower()
            if any(pattern in key_lower for pattern in patterns):
                event_dict[key] = mask_value
        return event_dict

    return processor


def truncate_large_values(max_length: int = 500) -> Processor:
    """Processor cutting string values longer than ``max_length``."""

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and len(value) > max_length:
                event_dict[key] = (
                    value[:max_length] + f"...[truncated, {len(value)} chars total]"
                )
        return event_dict

    return processor
