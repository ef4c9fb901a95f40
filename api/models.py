"""
API request and response models for tokengate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.

Password fields are capped at 128 characters. bcrypt only reads the first 72
bytes of its input, so anything beyond that does not change the hash.
Minimum length is enforced by AuthService, not here, so the WEAK_PASSWORD
code reaches the client instead of a generic 422.
"""

from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, ConfigDict, StringConstraints

from auth.models import UserSummary

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Names and emails are trimmed. Passwords are taken byte-for-byte on every
# route so the value hashed at signup is the value verified later.
NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
EmailStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=320, pattern=EMAIL_PATTERN)]
PasswordStr = Annotated[str, StringConstraints(min_length=1, max_length=128)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup."""

    name: NameStr
    email: EmailStr
    password: PasswordStr


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=320)]
    password: PasswordStr


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/v1/auth/change-password."""

    current_password: PasswordStr
    new_password: PasswordStr


class UpdateProfileRequest(BaseModel):
    """Request body for PUT /api/v1/auth/update-profile. At least one field required."""

    name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]] = None
    email: Optional[EmailStr] = None


class DeleteAccountRequest(BaseModel):
    """Request body for DELETE /api/v1/auth/delete-account."""

    password: PasswordStr


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public projection of a user. Never carries hash, tokens or counters."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str

    @classmethod
    def from_summary(cls, summary: UserSummary) -> "UserResponse":
        return cls(id=summary.id, name=summary.name, email=summary.email)


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh.

    The new refresh token is never in the body -- it travels in the
    httpOnly cookie only.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class SessionResponse(TokenResponse):
    """Response for POST /signup and POST /login."""

    message: str
    user: UserResponse


class UserEnvelope(BaseModel):
    """Response for GET /verify and PUT /update-profile."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    message: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    detail carries structured extras such as attempts_left or
    minutes_remaining; for request validation failures it is the stringified
    pydantic error list.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Union[dict[str, Any], str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
