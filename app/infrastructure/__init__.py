"""Infrastructure modules for the reminder engine.

Centralized infrastructure components:
- configuration: Settings management (Settings, RetrySettings, SchedulerSettings)
- logging: structlog setup and request context (get_module_logger)
- events: Event system
- operations: Operation results and error classification
- resilience: Retry records, store and worker
- services: Dependency injection services (get_settings, get_engine)
"""
