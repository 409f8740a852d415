"""Notification channel abstract base class.

Every delivery medium (email, push, SMS, in-app) implements this interface.
Transports report through OperationResult; the base class turns that into
the ChannelResponse or ChannelError the dispatcher records.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional, Union

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus
from modules.reminders.clock import Clock, utcnow
from modules.reminders.models import (
    Channel,
    ChannelError,
    ChannelResponse,
    OutboundMessage,
)

logger = get_module_logger()

SendOutcome = Union[ChannelResponse, ChannelError]


def outcome_from_result(result: OperationResult, clock: Clock = utcnow) -> SendOutcome:
    """Map a transport OperationResult onto the delivery outcome models.

    SUCCESS becomes a ChannelResponse carrying ``data["message_id"]`` when
    present. Only TRANSIENT_ERROR is retryable.
    """
    now = clock()
    if result.is_success:
        data = result.data if isinstance(result.data, dict) else {}
        return ChannelResponse(
            delivered_at=now, provider_message_id=data.get("message_id")
        )

    retry_after = None
    if result.retry_after:
        retry_after = now + timedelta(seconds=result.retry_after)
    return ChannelError(
        code=result.error_code or result.status.value.upper(),
        message=result.message,
        retryable=result.status == OperationStatus.TRANSIENT_ERROR,
        retry_after=retry_after,
    )


class NotificationChannel(ABC):
    """Abstract base class for notification channels.

    Subclasses implement ``resolve_recipient`` (validate and normalize the
    address) and ``_deliver`` (one transport call). ``send`` never raises for
    transport failures; anything unexpected that escapes ``_deliver`` is left
    to the dispatcher, which classifies it as transient.

    Example Implementation:
        class PagerChannel(NotificationChannel):
            channel = Channel.PUSH

            def resolve_recipient(self, recipient):
                return OperationResult.success(data={"address": recipient})

            def _deliver(self, message, address):
                return pager_client.page(address, message.content.body)
    """

    channel: Channel

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utcnow

    @property
    def channel_name(self) -> str:
        return self.channel.value

    def send(self, message: OutboundMessage) -> SendOutcome:
        """Deliver ``message`` to its recipient."""
        resolved = self.resolve_recipient(message.recipient)
        if not resolved.is_success:
            logger.warning(
                "recipient_resolution_failed",
                channel=self.channel_name,
                occurrence_id=message.occurrence_id,
                error_code=resolved.error_code,
            )
            return outcome_from_result(resolved, self._clock)

        result = self._deliver(message, resolved.data["address"])
        if result.is_success:
            logger.info(
                "channel_send_succeeded",
                channel=self.channel_name,
                occurrence_id=message.occurrence_id,
            )
        else:
            logger.warning(
                "channel_send_failed",
                channel=self.channel_name,
                occurrence_id=message.occurrence_id,
                status=result.status.value,
                error_code=result.error_code,
                error=result.message,
            )
        return outcome_from_result(result, self._clock)

    @abstractmethod
    def resolve_recipient(self, recipient: str) -> OperationResult:
        """Validate ``recipient`` for this channel.

        Returns:
            Success with ``data={"address": normalized}``, or a
            PERMANENT_ERROR with ``error_code="INVALID_ADDRESS"``.
        """

    @abstractmethod
    def _deliver(self, message: OutboundMessage, address: str) -> OperationResult:
        """Perform the transport call."""

    def health_check(self) -> OperationResult:
        """Check channel health. Channels without a remote dependency are always healthy."""
        return OperationResult.success(message=f"{self.channel_name} channel ready")
