"""
Type aliases for FastAPI dependency injection.

Provides annotated type hints for common infrastructure dependencies.
"""

from typing import Annotated

from fastapi import Depends

from infrastructure.configuration import Settings
from infrastructure.services.providers import get_engine, get_settings
from modules.reminders.engine import ReminderEngine

# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Reminder engine dependency
EngineDep = Annotated[ReminderEngine, Depends(get_engine)]

__all__ = [
    "SettingsDep",
    "EngineDep",
]
