"""Reminder engine configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import ChannelSettings

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    DispatchSettings,
    RetrySettings,
    SchedulerSettings,
    ServerSettings,
)


class Settings(BaseSettings):
    """Reminder engine configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: Channel transports (SMTP, push gateway, SMS gateway)
    - **Infrastructure**: Core engine configurations (scheduler, retry, dispatch, server)

    Environment Variables:
        PREFIX: Environment prefix for non-production deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        tick = settings.scheduler.tick_seconds
        max_attempts = settings.retry.max_attempts

        if settings.is_production:
            # Production-specific logic...
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    channels: ChannelSettings

    # Infrastructure settings
    scheduler: SchedulerSettings
    retry: RetrySettings
    dispatch: DispatchSettings
    server: ServerSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "channels": ChannelSettings,
            # Infrastructure
            "scheduler": SchedulerSettings,
            "retry": RetrySettings,
            "dispatch": DispatchSettings,
            "server": ServerSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
