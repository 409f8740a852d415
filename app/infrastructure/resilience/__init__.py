"""Resilience patterns.

``infrastructure.resilience.retry`` holds the claim-based retry queue that
redelivers reminder occurrences after transient failures, and
``infrastructure.resilience.circuit_breaker`` fast-fails calls to a gateway
that keeps failing.
"""
