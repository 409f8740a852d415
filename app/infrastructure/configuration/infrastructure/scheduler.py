"""Trigger scheduler infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class SchedulerSettings(InfrastructureSettings):
    """Trigger scheduler driver configuration.

    Environment Variables:
        SCHEDULER_TICK_SECONDS: Resolution of the periodic driver (default: 1s)
        SCHEDULER_WORKER_COUNT: Threads processing due occurrences (default: 4)
    """

    tick_seconds: int = Field(
        default=1,
        alias="SCHEDULER_TICK_SECONDS",
        description="Interval between scheduler ticks (seconds)",
    )
    worker_count: int = Field(
        default=4,
        alias="SCHEDULER_WORKER_COUNT",
        description="Number of worker threads processing due occurrences",
    )
