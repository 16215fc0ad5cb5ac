"""Pydantic schemas for authentication API.

Field patterns are checked by the credential service so that every rejected
field is reported in one message; the schemas only bound the sizes.
"""

from pydantic import BaseModel, Field

from deltapay.models import PrincipalKind


class MessageResponse(BaseModel):
    """Generic response envelope."""

    success: bool
    message: str


class RegisterRequest(BaseModel):
    """Request to register a customer account."""

    full_name: str = Field(..., max_length=100)
    id_number: str = Field(..., max_length=32)
    account_number: str = Field(..., max_length=32)
    username: str = Field(..., max_length=50)
    password: str = Field(..., max_length=128)


class ProfileResponse(BaseModel):
    """Public profile of an authenticated principal."""

    id: int
    kind: str
    username: str
    full_name: str
    account_number: str | None = None
    employee_number: str | None = None


class RegisterResponse(MessageResponse):
    """Response after a successful registration."""

    user_id: int


class LoginRequest(BaseModel):
    """Request for login."""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)


class LoginResponse(MessageResponse):
    """Response with the session token."""

    token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Session token lifetime in seconds")
    profile: ProfileResponse


class CsrfTokenResponse(MessageResponse):
    """Response with a fresh single-use CSRF token."""

    csrf_token: str


class AccountToggleRequest(BaseModel):
    """Request to lock (deactivate) or unlock (activate) an account."""

    lock: bool
    kind: PrincipalKind = PrincipalKind.USER
    reason: str | None = Field(default=None, max_length=500)


class AccountToggleResponse(MessageResponse):
    """Response after an account status change."""

    profile: ProfileResponse
