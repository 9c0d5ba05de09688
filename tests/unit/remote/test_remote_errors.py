"""Status-based classification of remote failures."""

from types import SimpleNamespace

import pytest

from clinical_ocr.core.exceptions import (
    RemoteAuthError,
    RemoteNotFoundError,
    RemoteRateLimitedError,
    RemoteServerError,
    RemoteServiceError,
)
from clinical_ocr.remote import classify_remote_failure, error_for_status

pytestmark = pytest.mark.unit


class _SdkError(Exception):
    def __init__(self, text: str, **attrs):
        super().__init__(text)
        for name, value in attrs.items():
            setattr(self, name, value)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (401, RemoteAuthError),
        (403, RemoteAuthError),
        (404, RemoteNotFoundError),
        (429, RemoteRateLimitedError),
        (500, RemoteServerError),
        (503, RemoteServerError),
    ],
)
def test_error_for_status_picks_specific_type(status, expected):
    error = error_for_status(status, "detail")

    assert type(error) is expected
    assert error.status == status
    assert error.detail == "detail"


@pytest.mark.parametrize("status", [400, 418, None])
def test_other_statuses_use_base_remote_error(status):
    assert type(error_for_status(status)) is RemoteServiceError


def test_rate_limit_message_asks_to_wait():
    assert "wait a moment" in str(error_for_status(429))


class TestClassifyRemoteFailure:
    def test_reads_code_attribute(self):
        error = classify_remote_failure(_SdkError("quota", code=429))

        assert isinstance(error, RemoteRateLimitedError)
        assert error.detail == "quota"

    def test_reads_nested_response_status(self):
        error = classify_remote_failure(
            _SdkError("down", response=SimpleNamespace(status_code=502))
        )

        assert isinstance(error, RemoteServerError)
        assert error.status == 502

    def test_string_status_is_not_a_code(self):
        error = classify_remote_failure(_SdkError("denied", status="PERMISSION_DENIED"))

        assert type(error) is RemoteServiceError
        assert error.status is None

    def test_prefers_message_attribute_for_detail(self):
        error = classify_remote_failure(
            _SdkError("generic text", code=401, message="API key not valid")
        )

        assert isinstance(error, RemoteAuthError)
        assert error.detail == "API key not valid"

    def test_typed_errors_pass_through(self):
        original = RemoteNotFoundError("gone", status=404)
        assert classify_remote_failure(original) is original

    def test_unknown_exception_has_no_status(self):
        error = classify_remote_failure(ConnectionError("reset by peer"))

        assert type(error) is RemoteServiceError
        assert error.status is None
        assert "reset by peer" in str(error)
