"""Unit tests for InAppProvider."""

from unittest.mock import MagicMock

import pytest

from infrastructure.notifications.models import NotificationChannel
from infrastructure.notifications.providers.in_app import (
    InAppProvider,
    InMemoryInAppMessageStore,
)
from tests.factories.notifications import make_send_request


@pytest.mark.unit
class TestInAppProvider:
    """Tests for storing in-app messages."""

    def test_message_is_stored_for_user(self):
        store = InMemoryInAppMessageStore()
        provider = InAppProvider(store=store)

        result = provider.send(
            make_send_request(recipient="user-1", data={"k": "v"}, notification_id="n-1")
        )

        assert result.success is True
        assert result.channel == NotificationChannel.IN_APP
        messages = store.list_for_user("user-1")
        assert len(messages) == 1
        assert messages[0].id == result.provider_message_id
        assert messages[0].notification_id == "n-1"
        assert messages[0].data == {"k": "v"}
        assert store.count() == 1

    def test_store_error_is_transient(self):
        store = MagicMock()
        store.save.side_effect = RuntimeError("db down")

        result = InAppProvider(store=store).send(make_send_request(recipient="user-1"))

        assert result.success is False
        assert result.error_code == "STORE_ERROR"
        assert result.metadata["retryable"] is True

    def test_blank_recipient_rejected(self):
        result = InAppProvider().send(make_send_request(recipient="  "))

        assert result.error_code == "MISSING_RECIPIENT"

    def test_list_for_user_returns_copy(self):
        store = InMemoryInAppMessageStore()

        store.list_for_user("user-1").append("junk")

        assert store.list_for_user("user-1") == []
