"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache
from typing import TYPE_CHECKING

from infrastructure.configuration import Settings

if TYPE_CHECKING:
    from modules.reminders.engine import ReminderEngine


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process.

    Infrastructure packages should use this directly to ensure singleton consistency:
        from infrastructure.services.providers import get_settings
        settings = get_settings()

    Application code should use the DI type alias for testability:
        from infrastructure.services.dependencies import SettingsDep
        @router.get("/config")
        def get_config(settings: SettingsDep):
            return settings.model_dump()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_engine() -> "ReminderEngine":
    """
    Get application-scoped reminder engine singleton.

    The engine is built with in-memory account settings, templates and storage.
    The server lifespan starts and stops its driver.

    Usage:
        @router.post("/triggers")
        def create(engine: EngineDep):
            engine.enqueue_trigger(trigger)
    """
    from modules.reminders.engine import ReminderEngine

    return ReminderEngine(get_settings())
