"""Transport outcome status."""

from enum import Enum


class OperationStatus(Enum):
    """How a channel transport call ended.

    Only TRANSIENT_ERROR is worth another delivery attempt. UNAUTHORIZED is
    kept apart from PERMANENT_ERROR so credential problems stand out in logs.
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
