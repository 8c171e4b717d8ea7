"""Result values and error → status mapping."""

import json

import pytest

from warden.api.errors import error_response, status_for
from warden.errors import ErrorCode
from warden.result import err, ok


def test_ok_and_err():
    success = ok(42)
    assert success.is_success and not success.is_failure
    assert success.value == 42

    failure = err(ErrorCode.SESSION_NOT_FOUND, "Session not found.")
    assert failure.is_failure
    assert failure.value is None
    assert failure.to_dict() == {"code": "SESSION_NOT_FOUND", "message": "Session not found."}


@pytest.mark.parametrize(
    "code,status",
    [
        (ErrorCode.INVALID_EMAIL_OR_PASSWORD, 401),
        (ErrorCode.INVALID_CREDENTIALS, 401),
        (ErrorCode.EMAIL_NOT_VERIFIED, 403),
        (ErrorCode.FEATURE_DISABLED, 403),
        (ErrorCode.PROVIDER_NOT_FOUND, 404),
        (ErrorCode.SESSION_NOT_FOUND, 404),
        (ErrorCode.USER_ALREADY_EXISTS, 400),
        (ErrorCode.INTERNAL_ERROR, 400),
        (ErrorCode.FAILED_TO_CREATE_SESSION, 400),
        (ErrorCode.INVALID_TOKEN, 400),
    ],
)
def test_status_for(code, status):
    assert status_for(code) == status


def test_error_response_body():
    response = error_response(err(ErrorCode.FEATURE_DISABLED, "Sign up is disabled."))
    assert response.status_code == 403
    assert json.loads(response.body) == {
        "code": "FEATURE_DISABLED",
        "message": "Sign up is disabled.",
    }
