import pytest
import requests

from infrastructure.resilience.circuit_breaker import CircuitBreaker, CircuitState
from modules.reminders.channels import PushChannel
from modules.reminders.models import ChannelError, ChannelResponse

pytestmark = pytest.mark.unit


class TestPushChannel:
    def test_posts_to_gateway(self, channel_settings, session, make_message, push_content, clock):
        channel = PushChannel(channel_settings, 3.0, session=session, clock=clock)

        outcome = channel.send(make_message("device-token-1", push_content))

        assert outcome == ChannelResponse(delivered_at=clock(), provider_message_id="provider-1")
        session.post.assert_called_once_with(
            "https://push.test/send",
            json={
                "token": "device-token-1",
                "notification": {"title": "Reminder", "body": "Stand up"},
                "data": {"occurrence_id": "occurrence-1"},
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": "Bearer push-key",
            },
            timeout=3.0,
        )

    @pytest.mark.parametrize("token", ["", "   ", "bad token"])
    def test_malformed_token(self, channel_settings, session, make_message, push_content, token):
        channel = PushChannel(channel_settings, session=session)

        outcome = channel.send(make_message(token, push_content))

        assert outcome.code == "INVALID_TOKEN"
        assert not outcome.retryable
        session.post.assert_not_called()

    def test_missing_gateway_url(self, channel_settings, session, make_message, push_content):
        settings = channel_settings.model_copy(update={"PUSH_GATEWAY_URL": ""})
        channel = PushChannel(settings, session=session)

        outcome = channel.send(make_message("device-token-1", push_content))

        assert outcome.code == "INVALID_REQUEST"
        assert not outcome.retryable

    def test_rate_limited_gateway_sets_retry_after(
        self, channel_settings, session, make_message, push_content, clock, gateway_response
    ):
        session.post.return_value = gateway_response(
            429, {"error": "slow down"}, headers={"Retry-After": "30"}
        )
        channel = PushChannel(channel_settings, session=session, clock=clock)

        outcome = channel.send(make_message("device-token-1", push_content))

        assert isinstance(outcome, ChannelError)
        assert outcome.retryable
        assert (outcome.retry_after - clock()).total_seconds() == 30

    def test_unregistered_token_is_permanent(
        self, channel_settings, session, make_message, push_content, gateway_response
    ):
        session.post.return_value = gateway_response(400, {"error": "INVALID_TOKEN"})
        channel = PushChannel(channel_settings, session=session)

        outcome = channel.send(make_message("device-token-1", push_content))

        assert outcome.code == "INVALID_TOKEN"
        assert not outcome.retryable

    def test_gateway_timeout_is_transient(
        self, channel_settings, session, make_message, push_content, gateway_response
    ):
        session.post.side_effect = requests.Timeout("read timed out")
        channel = PushChannel(channel_settings, session=session)

        outcome = channel.send(make_message("device-token-1", push_content))

        assert outcome.code == "TIMEOUT"
        assert outcome.retryable

    def test_server_error_is_transient(
        self, channel_settings, session, make_message, push_content, gateway_response
    ):
        session.post.return_value = gateway_response(503)
        channel = PushChannel(channel_settings, session=session)

        outcome = channel.send(make_message("device-token-1", push_content))

        assert outcome.code == "SERVER_ERROR"
        assert outcome.retryable

    def test_repeated_server_errors_open_the_circuit(
        self, channel_settings, session, make_message, push_content, gateway_response
    ):
        session.post.return_value = gateway_response(503)
        breaker = CircuitBreaker("push_gateway", failure_threshold=2, reset_seconds=60)
        channel = PushChannel(channel_settings, session=session, circuit_breaker=breaker)

        channel.send(make_message("device-token-1", push_content))
        channel.send(make_message("device-token-1", push_content))
        outcome = channel.send(make_message("device-token-1", push_content))

        assert breaker.state == CircuitState.OPEN
        assert outcome.code == "CIRCUIT_OPEN"
        assert outcome.retryable
        assert outcome.retry_after is not None
        assert session.post.call_count == 2

    def test_rejected_tokens_keep_the_circuit_closed(
        self, channel_settings, session, make_message, push_content, gateway_response
    ):
        session.post.return_value = gateway_response(400, {"error": "INVALID_TOKEN"})
        breaker = CircuitBreaker("push_gateway", failure_threshold=2)
        channel = PushChannel(channel_settings, session=session, circuit_breaker=breaker)

        for _ in range(3):
            channel.send(make_message("device-token-1", push_content))

        assert breaker.state == CircuitState.CLOSED
        assert session.post.call_count == 3

    def test_circuit_settings_come_from_channel_settings(self, channel_settings, session):
        settings = channel_settings.model_copy(
            update={"GATEWAY_CIRCUIT_FAILURE_THRESHOLD": 7, "GATEWAY_CIRCUIT_RESET_SECONDS": 15.0}
        )
        channel = PushChannel(settings, session=session)

        assert channel.circuit_breaker.failure_threshold == 7
        assert channel.circuit_breaker.reset_seconds == 15.0
