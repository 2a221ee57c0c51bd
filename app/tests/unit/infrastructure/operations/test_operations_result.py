"""Unit tests for OperationResult and OperationStatus."""

import pytest

from infrastructure.operations import OperationResult, OperationStatus


@pytest.mark.unit
class TestOperationResult:
    def test_success(self):
        result = OperationResult.success(data={"message_id": "m-1"})

        assert result.is_success is True
        assert result.is_retryable is False
        assert result.message == "ok"
        assert result.data == {"message_id": "m-1"}

    def test_transient_error_is_retryable(self):
        result = OperationResult.transient_error("busy", error_code="RATE_LIMITED", retry_after=5)

        assert result.is_success is False
        assert result.is_retryable is True
        assert result.retry_after == 5

    def test_permanent_error_is_not_retryable(self):
        result = OperationResult.permanent_error("bad address", error_code="INVALID_EMAIL")

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.is_retryable is False
        assert result.error_code == "INVALID_EMAIL"

    @pytest.mark.parametrize(
        "status,retryable",
        [
            (OperationStatus.SUCCESS, False),
            (OperationStatus.TRANSIENT_ERROR, True),
            (OperationStatus.PERMANENT_ERROR, False),
            (OperationStatus.UNAUTHORIZED, False),
            (OperationStatus.NOT_FOUND, False),
        ],
    )
    def test_status_retryability(self, status, retryable):
        assert status.is_retryable is retryable
