"""Operation result types and status enums.

This module contains standardized result types for transport operations
performed by channel adapters, including status enums, result dataclasses,
and error classifiers for HTTP gateway and SMTP exceptions.
"""

from infrastructure.operations.classifiers import (
    classify_http_response,
    classify_requests_error,
    classify_smtp_error,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "classify_http_response",
    "classify_requests_error",
    "classify_smtp_error",
]
