"""Pydantic schemas for sessions and their cache representations.

Learn: Two cache values live in the cache tier:
- the session snapshot, under key = token: {"session": {...}, "user": {...}}
- the per-user registry, under key = "active-sessions-{user_id}":
  [{"token": ..., "expiresAtUnixMs": ...}, ...]

The snapshot is authoritative for fast-path authentication. The registry is
only an index for bulk revocation and may be stale.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# ─── DTOs ─────────────────────────────────────────────────


class UserDto(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    email_verified: bool = False
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SessionDto(BaseModel):
    id: str
    token: str
    user_id: str
    expires_at: datetime
    ip_address: str = ""
    user_agent: str = ""
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Cache values ─────────────────────────────────────────


class SessionSnapshot(BaseModel):
    """Session + owning user, cached under the session token."""

    session: SessionDto
    user: UserDto

    @classmethod
    def from_orm_pair(cls, session, user) -> "SessionSnapshot":
        return cls(
            session=SessionDto.model_validate(session),
            user=UserDto.model_validate(user),
        )


class SessionReference(BaseModel):
    """One registry entry: which token, and when that session dies."""

    token: str
    expires_at: int = Field(alias="expiresAtUnixMs")

    model_config = ConfigDict(populate_by_name=True)


SessionRegistry = TypeAdapter(list[SessionReference])
