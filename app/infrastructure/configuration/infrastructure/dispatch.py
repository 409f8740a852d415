"""Channel dispatch infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class DispatchSettings(InfrastructureSettings):
    """Channel dispatch configuration.

    Environment Variables:
        DISPATCH_SEND_TIMEOUT_SECONDS: Upper bound on one adapter send (default: 10s)
        DISPATCH_MAX_WORKERS: Threads available for concurrent adapter sends (default: 8)
    """

    send_timeout_seconds: float = Field(
        default=10.0,
        alias="DISPATCH_SEND_TIMEOUT_SECONDS",
        description="Timeout applied to each channel adapter send (seconds)",
    )
    max_workers: int = Field(
        default=8,
        alias="DISPATCH_MAX_WORKERS",
        description="Maximum concurrent channel adapter sends",
    )
