"""Server infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class ServerSettings(InfrastructureSettings):
    """Server and application runtime configuration.

    Environment Variables:
        ENGINE_AUTOSTART: Start the reminder engine driver with the API (default: True)
        BACKEND_URL: Backend API base URL (default: http://127.0.0.1:8000)
    """

    ENGINE_AUTOSTART: bool = Field(default=True, alias="ENGINE_AUTOSTART")
    BACKEND_URL: str = Field(default="http://127.0.0.1:8000", alias="BACKEND_URL")
