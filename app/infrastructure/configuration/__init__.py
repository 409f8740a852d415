"""Infrastructure configuration module - public API.

This module provides centralized configuration management for the reminder
engine using Pydantic BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    RetrySettings: Retry system settings class (for testing)
    SchedulerSettings: Scheduler driver settings class (for testing)

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    tick = settings.scheduler.tick_seconds
    timeout = settings.dispatch.send_timeout_seconds
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.configuration.infrastructure.scheduler import SchedulerSettings

__all__ = ["Settings", "RetrySettings", "SchedulerSettings"]
