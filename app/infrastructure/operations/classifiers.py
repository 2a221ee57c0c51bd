"""Error classifiers for provider HTTP calls.

Converts ``requests`` responses and exceptions raised while talking to
vendor APIs (SendGrid, Twilio, FCM, webhook endpoints) into standardized
OperationResult objects, so every provider reports failures the same way.

Key Functions:
- classify_http_response(): non-accepted HTTP responses → OperationResult
- classify_request_exception(): requests exceptions → OperationResult

Usage:
    from infrastructure.operations.classifiers import (
        classify_http_response,
        classify_request_exception,
    )

    try:
        response = requests.post(url, json=payload, timeout=10)
    except requests.RequestException as exc:
        return classify_request_exception(exc, vendor="SendGrid")
    if response.status_code != 202:
        return classify_http_response(response, vendor="SendGrid")
"""

from typing import Optional

import requests

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_RETRY_AFTER_SECONDS = 60


def _retry_after(response: requests.Response) -> int:
    header_value = response.headers.get("Retry-After")
    if header_value:
        try:
            return int(header_value)
        except (ValueError, TypeError):
            pass
    return DEFAULT_RETRY_AFTER_SECONDS


def _response_detail(response: requests.Response) -> str:
    text: Optional[str] = None
    try:
        text = response.text
    except (ValueError, UnicodeDecodeError):
        text = None
    if not text:
        return ""
    return text[:200]


def classify_http_response(
    response: requests.Response, vendor: str = "Provider"
) -> OperationResult:
    """Classify a non-accepted HTTP response into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting → TRANSIENT_ERROR with retry_after
    - 401: Unauthorized → UNAUTHORIZED
    - 403: Forbidden → PERMANENT_ERROR
    - 404: Not found → NOT_FOUND
    - 408: Request timeout → TRANSIENT_ERROR
    - 5xx: Server error → TRANSIENT_ERROR
    - Other 4xx: Client error → PERMANENT_ERROR

    Args:
        response: Response returned by the vendor API
        vendor: Vendor name used in messages

    Returns:
        OperationResult with appropriate status, message, error_code, and
        retry_after (if applicable)
    """
    status_code = response.status_code
    detail = _response_detail(response)

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"{vendor} API rate limited",
            error_code="RATE_LIMITED",
            retry_after=_retry_after(response),
        )

    if status_code == 401:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"{vendor} API authentication failed",
            error_code="UNAUTHORIZED",
        )

    if status_code == 403:
        return OperationResult.permanent_error(
            f"{vendor} API authorization denied",
            error_code="FORBIDDEN",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            f"{vendor} resource not found",
            error_code="NOT_FOUND",
        )

    if status_code == 408:
        return OperationResult.transient_error(
            f"{vendor} API request timed out",
            error_code="TIMEOUT",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"{vendor} API server error ({status_code})",
            error_code="SERVER_ERROR",
        )

    if 400 <= status_code < 500:
        return OperationResult.permanent_error(
            f"{vendor} API client error ({status_code}): {detail}".rstrip(": "),
            error_code="HTTP_ERROR",
        )

    return OperationResult.permanent_error(
        f"{vendor} API unexpected response ({status_code})",
        error_code="UNEXPECTED_RESPONSE",
    )


def classify_request_exception(
    exc: Exception, vendor: str = "Provider"
) -> OperationResult:
    """Classify an exception raised by ``requests`` into OperationResult.

    Timeouts and connection failures are transient; anything else raised by
    the HTTP layer (invalid URL, too many redirects) is permanent.

    Args:
        exc: Exception raised while performing the request
        vendor: Vendor name used in messages

    Returns:
        OperationResult with TRANSIENT_ERROR or PERMANENT_ERROR status
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"{vendor} API timed out: {exc}",
            error_code="TIMEOUT",
        )

    if isinstance(exc, requests.ConnectionError):
        return OperationResult.transient_error(
            f"{vendor} connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    if isinstance(exc, (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema)):
        return OperationResult.permanent_error(
            f"{vendor} endpoint is invalid: {exc}",
            error_code="INVALID_ENDPOINT",
        )

    return OperationResult.permanent_error(
        f"{vendor} request failed: {type(exc).__name__}: {exc}",
        error_code="REQUEST_FAILED",
    )
