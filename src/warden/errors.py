"""Error codes returned inside failed Results.

Learn: Codes are stable strings clients can branch on. INVALID_EMAIL_OR_PASSWORD
deliberately covers "no such user", "no credential account", "no password
hash" and "wrong password" so sign-in responses never reveal which one held.
"""

from enum import Enum


class ErrorCode(str, Enum):
    # System & configuration
    INTERNAL_ERROR = "INTERNAL_ERROR"
    FEATURE_DISABLED = "FEATURE_DISABLED"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    FAILED_TO_CREATE_SESSION = "FAILED_TO_CREATE_SESSION"

    # Input validation
    INVALID_INPUT = "INVALID_INPUT"
    PASSWORD_TOO_SHORT = "PASSWORD_TOO_SHORT"
    PASSWORD_TOO_LONG = "PASSWORD_TOO_LONG"

    # Identity & access
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_EMAIL_OR_PASSWORD = "INVALID_EMAIL_OR_PASSWORD"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Session
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
