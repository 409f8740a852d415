"""Delivery channel integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class ChannelSettings(IntegrationSettings):
    """Transport configuration for the email, push and SMS channels.

    Environment Variables:
        SMTP_HOST: SMTP relay host (default: localhost)
        SMTP_PORT: SMTP relay port (default: 587)
        SMTP_USERNAME: SMTP login (optional)
        SMTP_PASSWORD: SMTP password (optional)
        SMTP_USE_TLS: Issue STARTTLS before login (default: True)
        EMAIL_SENDER: From address for reminder emails
        PUSH_GATEWAY_URL: Push gateway endpoint URL
        PUSH_API_KEY: Push gateway API key
        SMS_GATEWAY_URL: SMS gateway endpoint URL
        SMS_API_KEY: SMS gateway API key
        GATEWAY_CIRCUIT_FAILURE_THRESHOLD: Consecutive transient gateway
            failures that open the circuit (default: 5)
        GATEWAY_CIRCUIT_RESET_SECONDS: Seconds an open circuit fast-fails
            before testing the gateway again (default: 60)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        smtp_host = settings.channels.SMTP_HOST
        ```
    """

    SMTP_HOST: str = Field(default="localhost", alias="SMTP_HOST")
    SMTP_PORT: int = Field(default=587, alias="SMTP_PORT")
    SMTP_USERNAME: str | None = Field(default=None, alias="SMTP_USERNAME")
    SMTP_PASSWORD: str | None = Field(default=None, alias="SMTP_PASSWORD")
    SMTP_USE_TLS: bool = Field(default=True, alias="SMTP_USE_TLS")
    EMAIL_SENDER: str = Field(default="reminders@example.com", alias="EMAIL_SENDER")
    PUSH_GATEWAY_URL: str = Field(default="", alias="PUSH_GATEWAY_URL")
    PUSH_API_KEY: str | None = Field(default=None, alias="PUSH_API_KEY")
    SMS_GATEWAY_URL: str = Field(default="", alias="SMS_GATEWAY_URL")
    SMS_API_KEY: str | None = Field(default=None, alias="SMS_API_KEY")
    GATEWAY_CIRCUIT_FAILURE_THRESHOLD: int = Field(
        default=5, alias="GATEWAY_CIRCUIT_FAILURE_THRESHOLD"
    )
    GATEWAY_CIRCUIT_RESET_SECONDS: float = Field(
        default=60.0, alias="GATEWAY_CIRCUIT_RESET_SECONDS"
    )
