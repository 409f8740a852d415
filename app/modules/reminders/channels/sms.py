"""SMS channel delivering through an SMS gateway."""

from typing import Any, Dict, Optional

import requests

from infrastructure.configuration.integrations import ChannelSettings
from infrastructure.operations import OperationResult
from infrastructure.resilience.circuit_breaker import CircuitBreaker
from modules.reminders.channels.gateway import HttpGatewayChannel, gateway_circuit_breaker
from modules.reminders.clock import Clock
from modules.reminders.models import Channel, OutboundMessage, SmsContent

# Concatenated SMS ceiling accepted by the gateway
MAX_SMS_LENGTH = 1600


class SmsChannel(HttpGatewayChannel):
    """Sends SmsContent to E.164 phone numbers (+15555550100)."""

    channel = Channel.SMS

    def __init__(
        self,
        settings: ChannelSettings,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Optional[Clock] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        super().__init__(
            settings.SMS_GATEWAY_URL,
            settings.SMS_API_KEY,
            timeout_seconds=timeout_seconds,
            session=session,
            clock=clock,
            circuit_breaker=circuit_breaker
            or gateway_circuit_breaker("sms_gateway", settings),
        )

    def resolve_recipient(self, recipient: str) -> OperationResult:
        phone = (recipient or "").strip()
        if not phone.startswith("+"):
            return OperationResult.permanent_error(
                "Phone number must be in E.164 format (+1234567890)",
                error_code="INVALID_ADDRESS",
            )
        digits = phone[1:]
        if not digits.isdigit() or not 1 <= len(digits) <= 15:
            return OperationResult.permanent_error(
                "Phone number must have 1-15 digits after +",
                error_code="INVALID_ADDRESS",
            )
        return OperationResult.success(data={"address": phone})

    def build_payload(self, message: OutboundMessage, address: str) -> Dict[str, Any]:
        content = message.content
        if not isinstance(content, SmsContent):
            raise TypeError(f"sms channel cannot send {type(content).__name__}")
        return {
            "to": address,
            "text": content.text[:MAX_SMS_LENGTH],
            "reference": message.occurrence_id,
        }
