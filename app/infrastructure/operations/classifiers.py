"""Error classifiers for channel transport exceptions.

Converts transport-specific failures (HTTP gateways reached through
``requests``, SMTP relays reached through ``smtplib``) into standardized
OperationResult objects, so every channel adapter reports transient and
permanent failures the same way.

Key Functions:
- classify_http_response(): non-2xx gateway response → OperationResult
- classify_requests_error(): requests exceptions → OperationResult
- classify_smtp_error(): smtplib/socket exceptions → OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_requests_error

    try:
        response = requests.post(url, json=payload, timeout=timeout)
    except requests.RequestException as exc:
        return classify_requests_error(exc)
"""

import smtplib
import socket
from typing import Optional

import requests

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

# Gateway error codes that mean the recipient can never be reached.
PERMANENT_GATEWAY_CODES = frozenset(
    {"INVALID_ADDRESS", "INVALID_TOKEN", "UNSUBSCRIBED", "MALFORMED_CONTENT"}
)


def _retry_after_seconds(response: requests.Response) -> int:
    header_value = response.headers.get("Retry-After")
    if header_value:
        try:
            return int(header_value)
        except (ValueError, TypeError):
            pass  # Use default if header is malformed
    return 60


def classify_http_response(response: requests.Response) -> OperationResult:
    """Classify a completed gateway HTTP response into OperationResult.

    Status Code Mapping:
    - 2xx: SUCCESS (JSON body returned as data when present)
    - 429: Rate limiting → TRANSIENT_ERROR with retry_after
    - 401/403: Credentials rejected → UNAUTHORIZED
    - 404/410: Recipient unknown or unsubscribed → PERMANENT_ERROR
    - 408: Gateway timeout → TRANSIENT_ERROR
    - 5xx: Server error → TRANSIENT_ERROR
    - Other 4xx: Malformed request → PERMANENT_ERROR

    A JSON body carrying an ``error`` code listed in PERMANENT_GATEWAY_CODES
    always yields a PERMANENT_ERROR with that code.
    """
    status_code = response.status_code
    body = _json_body(response)

    if 200 <= status_code < 300:
        return OperationResult.success(data=body, message="sent")

    gateway_code: Optional[str] = None
    if isinstance(body, dict):
        gateway_code = body.get("error") or body.get("code")

    if gateway_code in PERMANENT_GATEWAY_CODES:
        return OperationResult.permanent_error(
            f"Gateway rejected recipient ({status_code}): {gateway_code}",
            error_code=gateway_code,
        )

    if status_code == 429:
        return OperationResult.transient_error(
            "Gateway rate limited",
            error_code="RATE_LIMITED",
            retry_after=_retry_after_seconds(response),
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Gateway rejected credentials ({status_code})",
            error_code="UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.permanent_error(
            "Recipient not found", error_code="INVALID_ADDRESS"
        )

    if status_code == 410:
        return OperationResult.permanent_error(
            "Recipient unsubscribed", error_code="UNSUBSCRIBED"
        )

    if status_code == 408 or 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Gateway server error ({status_code})",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Gateway client error ({status_code}): {response.text[:200]}",
        error_code="MALFORMED_CONTENT",
    )


def _json_body(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return None


def classify_requests_error(exc: Exception) -> OperationResult:
    """Classify exceptions raised by ``requests`` into OperationResult.

    Timeouts and connection failures are transient. An ``HTTPError`` carrying
    a response is classified by its status code. Anything else raised while
    building the request (invalid URL, bad schema) is permanent.
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"Gateway timeout: {exc}", error_code="TIMEOUT"
        )

    if isinstance(exc, requests.ConnectionError):
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return classify_http_response(exc.response)

    if isinstance(exc, (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema)):
        return OperationResult.permanent_error(
            f"Gateway misconfigured: {exc}", error_code="INVALID_REQUEST"
        )

    return OperationResult.transient_error(
        f"Gateway error: {type(exc).__name__}: {exc}",
        error_code="CONNECTION_ERROR",
    )


def classify_smtp_error(exc: Exception) -> OperationResult:
    """Classify SMTP delivery failures into OperationResult.

    SMTP reply codes follow RFC 5321: 4xx replies are transient and 5xx are
    permanent. Refused recipients are permanent, authentication failures are
    UNAUTHORIZED, and socket level failures are transient.

    Example:
        try:
            smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            return classify_smtp_error(exc)
    """
    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        return OperationResult.permanent_error(
            f"Recipient refused: {', '.join(exc.recipients)}",
            error_code="INVALID_ADDRESS",
        )

    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "SMTP authentication failed",
            error_code="UNAUTHORIZED",
        )

    if isinstance(exc, smtplib.SMTPServerDisconnected):
        return OperationResult.transient_error(
            f"SMTP server disconnected: {exc}", error_code="CONNECTION_ERROR"
        )

    if isinstance(exc, smtplib.SMTPResponseException):
        if 400 <= exc.smtp_code < 500:
            return OperationResult.transient_error(
                f"SMTP temporary failure ({exc.smtp_code})",
                error_code="SERVER_ERROR",
            )
        return OperationResult.permanent_error(
            f"SMTP permanent failure ({exc.smtp_code}): {exc.smtp_error!r}",
            error_code="MALFORMED_CONTENT",
        )

    if isinstance(exc, (socket.timeout, TimeoutError)):
        return OperationResult.transient_error(
            f"SMTP timeout: {exc}", error_code="TIMEOUT"
        )

    return OperationResult.transient_error(
        f"SMTP connection error: {type(exc).__name__}: {exc}",
        error_code="CONNECTION_ERROR",
    )
