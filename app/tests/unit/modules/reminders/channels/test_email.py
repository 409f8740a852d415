import smtplib

import pytest

from modules.reminders.channels import EmailChannel
from modules.reminders.models import ChannelError, ChannelResponse

pytestmark = pytest.mark.unit


class FakeSMTP:
    """Records the calls an EmailChannel makes on an SMTP connection."""

    instances = []

    def __init__(self, host, port, timeout=None, fail_with=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.fail_with = fail_with
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)

    def noop(self):
        self.calls.append("noop")


@pytest.fixture(autouse=True)
def reset_fake_smtp():
    FakeSMTP.instances = []


def smtp_factory(fail_with=None):
    def _factory(host, port, timeout=None):
        return FakeSMTP(host, port, timeout=timeout, fail_with=fail_with)

    return _factory


class TestEmailChannel:
    def test_sends_through_relay(self, channel_settings, make_message, email_content, clock):
        channel = EmailChannel(channel_settings, 5.0, smtp_factory=smtp_factory(), clock=clock)

        outcome = channel.send(make_message("ana@example.com", email_content))

        assert isinstance(outcome, ChannelResponse)
        assert outcome.delivered_at == clock()
        assert outcome.provider_message_id

        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.test", 2525, 5.0)
        assert smtp.calls[:2] == ["starttls", ("login", "mailer", "hunter2")]
        sent = smtp.sent[0]
        assert sent["To"] == "ana@example.com"
        assert sent["From"] == "reminders@test.example"
        assert sent["Subject"] == "Reminder"
        assert sent.is_multipart()

    def test_invalid_address_is_permanent(
        self, channel_settings, make_message, email_content
    ):
        channel = EmailChannel(channel_settings, smtp_factory=smtp_factory())

        outcome = channel.send(make_message("not-an-address", email_content))

        assert isinstance(outcome, ChannelError)
        assert outcome.code == "INVALID_ADDRESS"
        assert not outcome.retryable
        assert FakeSMTP.instances == []

    def test_wrong_content_shape_is_permanent(
        self, channel_settings, make_message, sms_content
    ):
        channel = EmailChannel(channel_settings, smtp_factory=smtp_factory())

        outcome = channel.send(make_message("ana@example.com", sms_content))

        assert outcome.code == "MALFORMED_CONTENT"
        assert not outcome.retryable

    @pytest.mark.parametrize(
        "error,code,retryable",
        [
            (smtplib.SMTPServerDisconnected("gone"), "CONNECTION_ERROR", True),
            (smtplib.SMTPResponseException(451, b"try later"), "SERVER_ERROR", True),
            (smtplib.SMTPRecipientsRefused({"ana@example.com": (550, b"no")}), "INVALID_ADDRESS", False),
            (ConnectionRefusedError("refused"), "CONNECTION_ERROR", True),
        ],
    )
    def test_relay_failures_are_classified(
        self, channel_settings, make_message, email_content, error, code, retryable
    ):
        channel = EmailChannel(channel_settings, smtp_factory=smtp_factory(error))

        outcome = channel.send(make_message("ana@example.com", email_content))

        assert isinstance(outcome, ChannelError)
        assert outcome.code == code
        assert outcome.retryable is retryable

    def test_no_login_without_credentials(self, channel_settings, make_message, email_content):
        settings = channel_settings.model_copy(
            update={"SMTP_USERNAME": None, "SMTP_USE_TLS": False}
        )
        channel = EmailChannel(settings, smtp_factory=smtp_factory())

        channel.send(make_message("ana@example.com", email_content))

        assert FakeSMTP.instances[0].calls == ["quit"]

    def test_health_check(self, channel_settings):
        channel = EmailChannel(channel_settings, smtp_factory=smtp_factory())
        assert channel.health_check().is_success
        assert "noop" in FakeSMTP.instances[0].calls
