"""Retry system for failed operations.

Architecture:
- RetryRecord: Data model for a pending retry
- RetryStore: Storage interface (InMemoryRetryStore provided)
- RetryWorker: Batch processor for due retry records
- RetryProcessor: Protocol for module-specific retry logic
- RetryConfig / compute_backoff_delay: Backoff policy

Usage:
    store = InMemoryRetryStore(config)
    worker = RetryWorker(store, MyProcessor(), config)
    worker.process_batch()
"""

from infrastructure.resilience.retry.config import RetryConfig, compute_backoff_delay
from infrastructure.resilience.retry.models import RetryRecord, RetryResult
from infrastructure.resilience.retry.store import InMemoryRetryStore, RetryStore
from infrastructure.resilience.retry.worker import RetryProcessor, RetryWorker

__all__ = [
    "RetryRecord",
    "RetryResult",
    "RetryConfig",
    "compute_backoff_delay",
    "RetryStore",
    "InMemoryRetryStore",
    "RetryWorker",
    "RetryProcessor",
]
