"""Shared HTTP gateway transport for the push and SMS channels."""

from abc import abstractmethod
from typing import Any, Dict, Optional

import requests

from infrastructure.configuration.integrations import ChannelSettings
from infrastructure.operations import (
    OperationResult,
    classify_http_response,
    classify_requests_error,
)
from infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
)
from modules.reminders.channels.base import NotificationChannel
from modules.reminders.clock import Clock
from modules.reminders.models import OutboundMessage


def gateway_circuit_breaker(name: str, settings: ChannelSettings) -> CircuitBreaker:
    return CircuitBreaker(
        name=name,
        failure_threshold=settings.GATEWAY_CIRCUIT_FAILURE_THRESHOLD,
        reset_seconds=settings.GATEWAY_CIRCUIT_RESET_SECONDS,
    )


class HttpGatewayChannel(NotificationChannel):
    """POSTs a JSON payload to a delivery gateway.

    The gateway answers 2xx with ``{"id": "<provider message id>"}`` on
    success. Failures are classified by status code and by the ``error``
    field of the JSON body. Requests go through a circuit breaker; while it
    is open sends fail fast with a retryable ``CIRCUIT_OPEN`` error.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Optional[Clock] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        super().__init__(clock)
        self._url = url
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name=f"{self.channel_name}_gateway"
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    @abstractmethod
    def build_payload(self, message: OutboundMessage, address: str) -> Dict[str, Any]:
        """Gateway request body for one message."""

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _deliver(self, message: OutboundMessage, address: str) -> OperationResult:
        if not self._url:
            return OperationResult.permanent_error(
                f"{self.channel_name} gateway URL is not configured",
                error_code="INVALID_REQUEST",
            )
        try:
            payload = self.build_payload(message, address)
        except TypeError as e:
            return OperationResult.permanent_error(str(e), error_code="MALFORMED_CONTENT")

        try:
            return self._circuit_breaker.call(self._post, payload)
        except CircuitBreakerOpenError as e:
            return OperationResult.transient_error(
                str(e), error_code="CIRCUIT_OPEN", retry_after=e.retry_after
            )

    def _post(self, payload: Dict[str, Any]) -> OperationResult:
        try:
            response = self._session.post(
                self._url,
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return classify_requests_error(e)

        result = classify_http_response(response)
        if result.is_success:
            data = result.data if isinstance(result.data, dict) else {}
            return OperationResult.success(
                data={"message_id": data.get("id")}, message=result.message
            )
        return result
