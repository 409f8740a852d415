"""
Dependency injection services.

Provides provider functions for application singletons. The FastAPI type
aliases live in ``infrastructure.services.dependencies`` so that importing a
provider does not pull in the web stack.
"""

from infrastructure.services.providers import get_engine, get_settings

__all__ = [
    "get_engine",
    "get_settings",
]
