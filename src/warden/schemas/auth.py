"""Request/response schemas for the email + password endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from warden.schemas.session import SessionDto, UserDto


class SignUpEmailRequest(BaseModel):
    name: str = ""
    email: str
    password: str
    image: Optional[str] = None
    callback: Optional[str] = None


class SignInEmailRequest(BaseModel):
    email: str
    password: str
    callback: Optional[str] = None
    remember_me: bool = Field(False, alias="rememberMe")

    model_config = ConfigDict(populate_by_name=True)


class AuthResponse(BaseModel):
    """Returned by sign-up and sign-in. token is None when no session was made."""

    user: UserDto
    token: Optional[str] = None
    redirect: bool = False
    url: Optional[str] = None


class SignOutResponse(BaseModel):
    success: bool = True


class VerifyEmailResponse(BaseModel):
    status: bool = True
    user: UserDto


class SessionResponse(BaseModel):
    session: SessionDto
    user: UserDto
