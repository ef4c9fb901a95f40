"""
api/errors.py -- AuthError -> HTTP response mapping.

One function owns the translation so the app-level exception handler and the
routes that must decorate an error response (refresh clears its cookie on
every failure) produce byte-identical envelopes.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from auth.errors import AuthError, ErrorKind


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Render an AuthError as the standard error envelope.

    INTERNAL errors never carry detail -- the cause was already logged where
    it was caught.
    """
    detail = exc.detail or None
    if exc.kind is ErrorKind.INTERNAL:
        detail = None
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message, detail=detail)).model_dump(),
    )
    if exc.kind in (ErrorKind.TOKEN_FAILURE, ErrorKind.NOT_FOUND):
        response.headers["WWW-Authenticate"] = "Bearer"
    response.headers["Cache-Control"] = "no-store"
    return response
