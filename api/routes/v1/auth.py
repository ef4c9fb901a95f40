"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST   /api/v1/auth/signup          -- create account; 201 + refresh cookie
  POST   /api/v1/auth/login           -- password login; 200 + refresh cookie
  POST   /api/v1/auth/refresh         -- rotate refresh cookie, new access token
  GET    /api/v1/auth/verify          -- current user (Bearer)
  POST   /api/v1/auth/logout          -- clear stored refresh token + cookie (Bearer)
  PUT    /api/v1/auth/change-password -- (Bearer)
  PUT    /api/v1/auth/update-profile  -- name / email (Bearer)
  DELETE /api/v1/auth/delete-account  -- password-confirmed delete (Bearer)

Security:
  The access token is returned in the JSON body only. The refresh token is
  returned in the httpOnly cookie only (auth/cookies.py).
  /refresh clears the cookie on every failure so a dead credential is not
  replayed by the browser forever.
  Cache-Control: no-store on every response that carries a token.

Handlers are plain `def` -- FastAPI runs them in its threadpool, one
independent unit per request. Race safety lives in the store's conditional
updates, not here.

AuthError raised by AuthService propagates to the app-level handler in
api/main.py except where a route must decorate the error response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.errors import auth_error_response
from api.models import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    MessageResponse,
    SessionResponse,
    SignupRequest,
    TokenResponse,
    UpdateProfileRequest,
    UserEnvelope,
    UserResponse,
)
from auth.cookies import REFRESH_COOKIE_NAME, clear_refresh_cookie, set_refresh_cookie
from auth.dependencies import get_auth_service, get_current_user
from auth.errors import AuthError
from auth.models import AuthResult, UserSummary
from auth.session import AuthService

# Auth policy:
# - POST   /auth/signup, /auth/login:     public
# - POST   /auth/refresh:                 public -- the refresh cookie is the credential
# - everything else:                      requires Bearer access token (get_current_user)
router = APIRouter(prefix="/auth")


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=SessionResponse, status_code=201)
def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Create an account and start a session. 409 DUPLICATE_EMAIL on collision."""
    result = service.signup(body.name, body.email, body.password)
    return _session_response(service, result, "Account created successfully.", status_code=201)


@router.post("/login", response_model=SessionResponse)
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Authenticate with email and password.

    401 INVALID_CREDENTIALS carries detail.attempts_left; 423 ACCOUNT_LOCKED
    carries detail.minutes_remaining. A successful login replaces any
    previous session's refresh token.
    """
    result = service.login(body.email, body.password)
    return _session_response(service, result, "Login successful.")


@router.post("/refresh", response_model=TokenResponse)
def refresh(request: Request, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Exchange the refresh cookie for a new access token and a rotated cookie."""
    presented = request.cookies.get(REFRESH_COOKIE_NAME)
    try:
        result = service.refresh(presented)
    except AuthError as exc:
        resp = auth_error_response(exc)
        clear_refresh_cookie(resp)
        return resp

    resp = JSONResponse(
        content=TokenResponse(
            access_token=result.access_token,
            expires_in=int(service.tokens.access_ttl.total_seconds()),
        ).model_dump()
    )
    set_refresh_cookie(resp, result.refresh_token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/verify", response_model=UserEnvelope)
def verify(current_user: UserSummary = Depends(get_current_user)) -> UserEnvelope:
    """Return the user behind the presented access token."""
    return UserEnvelope(user=UserResponse.from_summary(current_user))


@router.post("/logout", response_model=MessageResponse)
def logout(
    current_user: UserSummary = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Invalidate the stored refresh token and clear the cookie. Idempotent."""
    service.logout(current_user.id)
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully.").model_dump())
    clear_refresh_cookie(resp)
    return resp


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: UserSummary = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """400 WEAK_PASSWORD if too short, 401 INCORRECT_PASSWORD if current is wrong."""
    service.change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully.")


@router.put("/update-profile", response_model=UserEnvelope)
def update_profile(
    body: UpdateProfileRequest,
    current_user: UserSummary = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> UserEnvelope:
    """Update name and/or email. 409 DUPLICATE_EMAIL if the email belongs to someone else."""
    updated = service.update_profile(current_user.id, name=body.name, email=body.email)
    return UserEnvelope(user=UserResponse.from_summary(updated), message="Profile updated successfully.")


@router.delete("/delete-account", response_model=MessageResponse)
def delete_account(
    body: DeleteAccountRequest,
    current_user: UserSummary = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Permanently delete the account after password confirmation."""
    service.delete_account(current_user.id, body.password)
    resp = JSONResponse(content=MessageResponse(message="Account deleted successfully.").model_dump())
    clear_refresh_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_response(service: AuthService, result: AuthResult, message: str, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=SessionResponse(
            access_token=result.access_token,
            expires_in=int(service.tokens.access_ttl.total_seconds()),
            message=message,
            user=UserResponse.from_summary(result.user),
        ).model_dump(),
    )
    set_refresh_cookie(resp, result.refresh_token)
    resp.headers["Cache-Control"] = "no-store"
    return resp
