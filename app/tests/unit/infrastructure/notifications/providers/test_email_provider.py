"""Unit tests for SendGridEmailProvider."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from infrastructure.notifications.models import NotificationChannel, NotificationPriority
from infrastructure.notifications.providers.email import SendGridEmailProvider
from tests.factories.notifications import make_send_request


def _response(status_code, headers=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    return response


@pytest.fixture
def provider():
    return SendGridEmailProvider(
        api_key="SG.test-key",
        from_email="no-reply@acme.io",
        from_name="Acme",
        api_url="https://sendgrid.acme.io/",
    )


@pytest.mark.unit
class TestSendGridEmailProvider:
    """Tests for sending email through SendGrid."""

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_accepted_send(self, mock_post, provider):
        mock_post.return_value = _response(202, headers={"X-Message-Id": "sg-123"})

        result = provider.send(make_send_request(notification_id="n-1"))

        assert result.success is True
        assert result.channel == NotificationChannel.EMAIL
        assert result.provider_message_id == "sg-123"
        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url == "https://sendgrid.acme.io/v3/mail/send"
        assert kwargs["headers"]["Authorization"] == "Bearer SG.test-key"
        payload = kwargs["json"]
        assert payload["personalizations"] == [{"to": [{"email": "ada@acme.io"}]}]
        assert payload["from"] == {"email": "no-reply@acme.io", "name": "Acme"}
        assert payload["subject"] == "Report ready"
        assert payload["content"] == [
            {"type": "text/plain", "value": "Your weekly report is ready"}
        ]
        assert payload["custom_args"] == {"notification_id": "n-1"}
        assert "headers" not in payload

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_html_with_text_alternative_and_urgent_headers(self, mock_post, provider):
        mock_post.return_value = _response(202)

        provider.send(
            make_send_request(
                content="<p>Hi</p>",
                text_content="Hi",
                priority=NotificationPriority.URGENT,
            )
        )

        payload = mock_post.call_args.kwargs["json"]
        assert payload["content"] == [
            {"type": "text/plain", "value": "Hi"},
            {"type": "text/html", "value": "<p>Hi</p>"},
        ]
        assert payload["headers"] == {"Priority": "Urgent", "Importance": "high"}

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_invalid_recipient_is_rejected_before_calling_sendgrid(
        self, mock_post, provider
    ):
        result = provider.send(make_send_request(recipient="not-an-email"))

        assert result.success is False
        assert result.error_code == "INVALID_EMAIL"
        mock_post.assert_not_called()

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_missing_api_key_is_not_configured(self, mock_post):
        provider = SendGridEmailProvider(api_key=None, from_email="no-reply@acme.io")

        result = provider.send(make_send_request())

        assert provider.is_configured() is False
        assert provider.is_available() is False
        assert result.error_code == "NOT_CONFIGURED"
        mock_post.assert_not_called()

    @pytest.mark.parametrize(
        "status_code,error_code,retryable",
        [
            (500, "SERVER_ERROR", True),
            (429, "RATE_LIMITED", True),
            (400, "HTTP_ERROR", False),
            (401, "UNAUTHORIZED", False),
        ],
    )
    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_rejected_send_is_classified(
        self, mock_post, provider, status_code, error_code, retryable
    ):
        mock_post.return_value = _response(status_code, text="bad request")

        result = provider.send(make_send_request())

        assert result.success is False
        assert result.error_code == error_code
        assert result.metadata["retryable"] is retryable

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_timeout_is_transient(self, mock_post, provider):
        mock_post.side_effect = requests.Timeout("read timed out")

        result = provider.send(make_send_request())

        assert result.success is False
        assert result.error_code == "TIMEOUT"
        assert result.metadata["retryable"] is True

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_repeated_transient_failures_open_the_circuit(self, mock_post, provider):
        """Five vendor outages in a row make the provider unavailable."""
        mock_post.return_value = _response(503)

        for _ in range(5):
            provider.send(make_send_request())
        result = provider.send(make_send_request())

        assert provider.is_available() is False
        assert result.error_code == "CIRCUIT_OPEN"
        assert mock_post.call_count == 5

    @patch("infrastructure.notifications.providers.email.requests.post")
    def test_permanent_failures_do_not_open_the_circuit(self, mock_post, provider):
        mock_post.return_value = _response(400, text="invalid payload")

        for _ in range(6):
            provider.send(make_send_request())

        assert provider.is_available() is True

    @patch("infrastructure.notifications.providers.email.requests.get")
    def test_health_check(self, mock_get, provider):
        mock_get.return_value = _response(200)

        health = provider.health_check()

        assert health.healthy is True
        assert health.error is None
        assert mock_get.call_args.args[0] == "https://sendgrid.acme.io/v3/scopes"

    @patch("infrastructure.notifications.providers.email.requests.get")
    def test_health_check_with_bad_credentials(self, mock_get, provider):
        mock_get.return_value = _response(401)

        health = provider.health_check()

        assert health.healthy is False
        assert "authentication failed" in health.error
