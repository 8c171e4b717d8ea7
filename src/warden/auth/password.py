"""Password hashing strategy.

Learn: The auth flows never call bcrypt directly. They receive a
PasswordStrategy (hash / verify / validate) at construction time, so the
algorithm is swappable without touching sign-in or sign-up.

The default uses bcrypt, which salts automatically and is slow on purpose.
The work factor (rounds=12) takes ~100ms per hash on modern hardware, so
hashing runs in a worker thread to keep the event loop responsive.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import bcrypt

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class PasswordValidation:
    """Outcome of a password policy check."""

    is_valid: bool
    message: Optional[str] = None

    @classmethod
    def valid(cls) -> "PasswordValidation":
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, message: str) -> "PasswordValidation":
        return cls(is_valid=False, message=message)


class PasswordStrategy(Protocol):
    async def hash(self, password: str) -> str: ...

    async def verify(self, password_hash: str, password: str) -> bool: ...

    async def validate(self, password: str) -> PasswordValidation: ...


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt.

    Learn: bcrypt includes a random salt automatically and produces
    hashes starting with "$2b$". Passwords are truncated to 72 bytes
    (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str, rounds: int = 12) -> bool:
    """Verify a password against a bcrypt hash. Malformed hashes never match.

    Learn: checkpw rejects a malformed hash before doing any work, so that
    case hashes the password once anyway to cost the same as a mismatch.
    """
    try:
        pw_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError):
        hash_password(password, rounds)
        return False


class BcryptPasswordStrategy:
    """Default strategy: bcrypt hashing plus an optional policy callback.

    Build once and share; it holds no per-call state.

        strategy = BcryptPasswordStrategy(
            validator=lambda pw: PasswordValidation.invalid("needs a digit")
            if not any(c.isdigit() for c in pw) else PasswordValidation.valid()
        )
    """

    def __init__(
        self,
        rounds: int = 12,
        validator: Optional[Callable[[str], PasswordValidation]] = None,
    ):
        self.rounds = rounds
        self.validator = validator

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self.rounds)

    async def verify(self, password_hash: str, password: str) -> bool:
        return await asyncio.to_thread(
            verify_password, password, password_hash, self.rounds
        )

    async def validate(self, password: str) -> PasswordValidation:
        if self.validator is None:
            return PasswordValidation.valid()
        return self.validator(password)
