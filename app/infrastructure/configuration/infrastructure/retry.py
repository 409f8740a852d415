"""Retry system infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry configuration for failed reminder deliveries.

    Environment Variables:
        RETRY_MAX_ATTEMPTS: Maximum delivery attempts per occurrence (default: 5)
        RETRY_BASE_DELAY_SECONDS: Base exponential backoff delay (default: 1s)
        RETRY_MAX_DELAY_SECONDS: Maximum backoff delay (default: 30s)
        RETRY_JITTER_RATIO: Symmetric jitter applied to each delay (default: 0.2)
        RETRY_BATCH_SIZE: Due retries processed per driver tick (default: 50)
        RETRY_CLAIM_LEASE_SECONDS: Claim duration on a retry record (default: 300s)

    Exponential Backoff:
        Delay calculation: min(base_delay * 2 ^ (attempt - 1), max_delay) +/- jitter

        Example with defaults (base=1s, max=30s):
            Attempt 1 failed: 1s  (0.8s - 1.2s)
            Attempt 2 failed: 2s  (1.6s - 2.4s)
            Attempt 3 failed: 4s  (3.2s - 4.8s)
            Attempt 4 failed: 8s  (6.4s - 9.6s)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        max_attempts = settings.retry.max_attempts
        ```
    """

    max_attempts: int = Field(
        default=5,
        alias="RETRY_MAX_ATTEMPTS",
        description="Maximum delivery attempts before an occurrence fails terminally",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        alias="RETRY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        alias="RETRY_MAX_DELAY_SECONDS",
        description="Maximum delay for exponential backoff (seconds)",
    )
    jitter_ratio: float = Field(
        default=0.2,
        alias="RETRY_JITTER_RATIO",
        description="Fraction of the delay used as symmetric random jitter",
    )
    batch_size: int = Field(
        default=50,
        alias="RETRY_BATCH_SIZE",
        description="Number of due retries to process per batch",
    )
    claim_lease_seconds: int = Field(
        default=300,
        alias="RETRY_CLAIM_LEASE_SECONDS",
        description="Duration to hold claim on retry record (seconds, 5 minutes)",
    )
