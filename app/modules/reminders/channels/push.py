"""Push channel delivering to device tokens through a push gateway."""

from typing import Any, Dict, Optional

import requests

from infrastructure.configuration.integrations import ChannelSettings
from infrastructure.operations import OperationResult
from infrastructure.resilience.circuit_breaker import CircuitBreaker
from modules.reminders.channels.gateway import HttpGatewayChannel, gateway_circuit_breaker
from modules.reminders.clock import Clock
from modules.reminders.models import Channel, OutboundMessage, PushContent


class PushChannel(HttpGatewayChannel):
    channel = Channel.PUSH

    def __init__(
        self,
        settings: ChannelSettings,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Optional[Clock] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        super().__init__(
            settings.PUSH_GATEWAY_URL,
            settings.PUSH_API_KEY,
            timeout_seconds=timeout_seconds,
            session=session,
            clock=clock,
            circuit_breaker=circuit_breaker
            or gateway_circuit_breaker("push_gateway", settings),
        )

    def resolve_recipient(self, recipient: str) -> OperationResult:
        token = (recipient or "").strip()
        if not token or any(c.isspace() for c in token):
            return OperationResult.permanent_error(
                "Push device token is missing or malformed",
                error_code="INVALID_TOKEN",
            )
        return OperationResult.success(data={"address": token})

    def build_payload(self, message: OutboundMessage, address: str) -> Dict[str, Any]:
        content = message.content
        if not isinstance(content, PushContent):
            raise TypeError(f"push channel cannot send {type(content).__name__}")
        return {
            "token": address,
            "notification": {"title": content.title, "body": content.body},
            "data": {"occurrence_id": message.occurrence_id},
        }
