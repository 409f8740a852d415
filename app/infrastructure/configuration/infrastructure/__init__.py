"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.dispatch import DispatchSettings
from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.configuration.infrastructure.scheduler import SchedulerSettings
from infrastructure.configuration.infrastructure.server import ServerSettings

__all__ = [
    "DispatchSettings",
    "RetrySettings",
    "SchedulerSettings",
    "ServerSettings",
]
