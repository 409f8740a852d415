"""Fixtures shared by the channel adapter tests."""

from unittest.mock import MagicMock

import pytest
import requests

from infrastructure.configuration.integrations import ChannelSettings
from modules.reminders.models import (
    EmailContent,
    InAppContent,
    OutboundMessage,
    PushContent,
    SmsContent,
)


@pytest.fixture
def channel_settings():
    return ChannelSettings(
        _env_file=None,
        SMTP_HOST="smtp.test",
        SMTP_PORT=2525,
        SMTP_USERNAME="mailer",
        SMTP_PASSWORD="hunter2",
        EMAIL_SENDER="reminders@test.example",
        PUSH_GATEWAY_URL="https://push.test/send",
        PUSH_API_KEY="push-key",
        SMS_GATEWAY_URL="https://sms.test/send",
        SMS_API_KEY="sms-key",
    )


def _gateway_response(status_code=200, body=None, headers=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = headers or {}
    response.text = str(body)
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    """requests.Session double answering 200 with a provider id."""
    mock = MagicMock(spec=requests.Session)
    mock.post.return_value = _gateway_response(200, {"id": "provider-1"})
    return mock


@pytest.fixture
def make_message():
    def _make(recipient, content, occurrence_id="occurrence-1"):
        return OutboundMessage(
            occurrence_id=occurrence_id,
            account_id="account-1",
            recipient=recipient,
            content=content,
        )

    return _make


@pytest.fixture
def email_content():
    return EmailContent(subject="Reminder", body="Stand up", html_body="<p>Stand up</p>")


@pytest.fixture
def push_content():
    return PushContent(title="Reminder", body="Stand up")


@pytest.fixture
def sms_content():
    return SmsContent(text="Reminder: stand up")


@pytest.fixture
def in_app_content():
    return InAppContent(title="Hi Ana", body="Stand up")


@pytest.fixture
def gateway_response():
    """Builds requests.Response doubles: ``gateway_response(status, body, headers)``."""
    return _gateway_response
