"""Retry system configuration and backoff calculation."""

import random
from dataclasses import dataclass
from typing import Optional

from infrastructure.configuration.infrastructure.retry import RetrySettings


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry system behavior.

    Attributes:
        max_attempts: Total attempts allowed per operation, first try included
        base_delay_seconds: Delay before the second attempt
        max_delay_seconds: Cap applied to the exponential delay before jitter
        jitter_ratio: Fraction of the delay added or removed at random
        batch_size: Number of records to process in a single batch
        claim_lease_seconds: How long a worker can hold a claim on a record

    Example:
        config = RetryConfig(max_attempts=3, base_delay_seconds=0.5)
    """

    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.2
    batch_size: int = 50
    claim_lease_seconds: int = 300

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds <= 0:
            raise ValueError("base_delay_seconds must be positive")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if not 0 <= self.jitter_ratio < 1:
            raise ValueError("jitter_ratio must be in [0, 1)")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.claim_lease_seconds < 1:
            raise ValueError("claim_lease_seconds must be at least 1")

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryConfig":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay_seconds=settings.base_delay_seconds,
            max_delay_seconds=settings.max_delay_seconds,
            jitter_ratio=settings.jitter_ratio,
            batch_size=settings.batch_size,
            claim_lease_seconds=settings.claim_lease_seconds,
        )


def compute_backoff_delay(
    attempt_number: int,
    config: RetryConfig,
    rng: Optional[random.Random] = None,
) -> float:
    """Delay in seconds before the attempt following ``attempt_number``.

    ``min(base * 2 ** (attempt_number - 1), max_delay)`` scaled by a uniform
    factor in ``[1 - jitter_ratio, 1 + jitter_ratio]``. The cap is applied
    before jitter, so a capped delay may exceed ``max_delay`` by the jitter.

    Args:
        attempt_number: 1-based number of the attempt that just failed
        config: RetryConfig supplying base, cap and jitter
        rng: Random source, injectable for deterministic tests

    Returns:
        Delay in seconds
    """
    if attempt_number < 1:
        raise ValueError("attempt_number must be at least 1")
    rng = rng or random
    delay = min(
        config.base_delay_seconds * (2 ** (attempt_number - 1)),
        config.max_delay_seconds,
    )
    jitter = rng.uniform(-config.jitter_ratio, config.jitter_ratio)
    return delay * (1 + jitter)
