"""Transport result type shared by the channel adapters."""

from dataclasses import dataclass
from typing import Any, Optional

from infrastructure.operations.status import OperationStatus


@dataclass
class OperationResult:
    """Outcome of one SMTP, gateway or inbox call.

    Attributes:
        status: OperationStatus of the call
        message: Human readable summary, copied into ChannelError.message
        data: Transport payload on success (``{"message_id": ...}``, the
            gateway JSON body, or a resolved ``{"address": ...}``)
        error_code: Machine code such as ``INVALID_ADDRESS`` or ``TIMEOUT``
        retry_after: Seconds the remote side asked us to wait before retrying
    """

    status: OperationStatus
    message: str
    data: Optional[Any] = None
    error_code: Optional[str] = None
    retry_after: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.status == OperationStatus.TRANSIENT_ERROR

    @classmethod
    def success(cls, data: Optional[Any] = None, message: str = "ok") -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, message=message, data=data)

    @classmethod
    def error(
        cls,
        status: OperationStatus,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "OperationResult":
        return cls(
            status=status,
            message=message,
            error_code=error_code,
            retry_after=retry_after,
        )

    @classmethod
    def transient_error(
        cls,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "OperationResult":
        """Failure that may clear up: timeouts, resets, 5xx, gateway throttling."""
        return cls.error(OperationStatus.TRANSIENT_ERROR, message, error_code, retry_after)

    @classmethod
    def permanent_error(
        cls, message: str, error_code: Optional[str] = None
    ) -> "OperationResult":
        """Failure no retry can fix: bad address, unregistered token, bad content."""
        return cls.error(OperationStatus.PERMANENT_ERROR, message, error_code)
