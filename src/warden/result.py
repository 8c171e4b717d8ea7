"""Result values for expected success/failure outcomes.

Learn: Services never raise for expected failures (bad input, wrong password,
missing session). They return a Result built with ok() or err(). Unexpected
store/cache faults are caught at the call site and turned into
err(ErrorCode.INTERNAL_ERROR, ...) so exception detail never leaks out.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from warden.errors import ErrorCode

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success (with an optional value) xor failure (code + message)."""

    is_success: bool
    value: Optional[T] = None
    error_code: Optional[ErrorCode] = None
    message: Optional[str] = None

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    def to_dict(self) -> dict:
        """Error body shape used by the HTTP layer."""
        return {
            "code": self.error_code.value if self.error_code else None,
            "message": self.message,
        }


def ok(value: Optional[T] = None) -> Result[T]:
    return Result(is_success=True, value=value)


def err(code: ErrorCode, message: str) -> Result:
    return Result(is_success=False, error_code=code, message=message)
