"""Error code → HTTP status mapping.

Learn: Services return Results; only this module knows about HTTP statuses.
The table is explicit so adding an ErrorCode never silently changes a
response status. Codes not listed answer 400.
"""

from fastapi.responses import JSONResponse

from warden.errors import ErrorCode
from warden.result import Result

DEFAULT_ERROR_STATUS = 400

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.INVALID_EMAIL_OR_PASSWORD: 401,
    ErrorCode.EMAIL_NOT_VERIFIED: 403,
    ErrorCode.FEATURE_DISABLED: 403,
    ErrorCode.PROVIDER_NOT_FOUND: 404,
    ErrorCode.SESSION_NOT_FOUND: 404,
}


def status_for(code: ErrorCode) -> int:
    return STATUS_BY_CODE.get(code, DEFAULT_ERROR_STATUS)


def error_response(result: Result) -> JSONResponse:
    """{"code", "message"} body with the mapped status."""
    return JSONResponse(
        status_code=status_for(result.error_code),
        content=result.to_dict(),
        headers={"Cache-Control": "no-store"},
    )
