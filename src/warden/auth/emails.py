"""Email normalization and format checks.

Learn: Users are unique by normalized email (trimmed + lowercased), so every
lookup and insert goes through normalize_email(). Format checking uses the
email-validator library (the same one behind pydantic's EmailStr) with DNS
deliverability checks off: sign-in must not depend on network lookups.
"""

from email_validator import EmailNotValidError, validate_email


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
