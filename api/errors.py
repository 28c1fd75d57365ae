"""
api/errors.py -- Mapping from auth DomainError values to HTTP responses.

Route handlers call unwrap() on every service result. A success value passes
through; a DomainError is raised as DomainErrorResponse and rendered by
domain_error_handler (registered in api/main.py).

Status mapping:
  PasswordMismatch, TokenInvalid             -> 401 (generic body, no reason)
  everything else (input, uniqueness, ...)   -> 422

Authentication failures share one message so a client cannot tell an
unknown email from a wrong password, or an expired token from a forged one.
"""

from __future__ import annotations

from typing import TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models import ErrorBody, ErrorResponse
from auth.errors import DomainError, PasswordMismatch, TokenInvalid

T = TypeVar("T")

_UNAUTHORIZED = (PasswordMismatch, TokenInvalid)


class DomainErrorResponse(Exception):
    """Carries a DomainError out of a route handler to the exception handler."""

    def __init__(self, error: DomainError) -> None:
        super().__init__(repr(error))
        self.error = error


def unwrap(result: T | DomainError) -> T:
    if isinstance(result, DomainError):
        raise DomainErrorResponse(result)
    return result


def status_for(error: DomainError) -> int:
    return 401 if isinstance(error, _UNAUTHORIZED) else 422


def message_for(error: DomainError) -> str:
    if isinstance(error, _UNAUTHORIZED):
        return "Unauthorized"
    return getattr(error, "description", type(error).__name__)


def error_content(*messages: str) -> dict:
    return ErrorResponse(errors=ErrorBody(body=list(messages))).model_dump()


async def domain_error_handler(request: Request, exc: DomainErrorResponse) -> JSONResponse:
    status = status_for(exc.error)
    response = JSONResponse(status_code=status, content=error_content(message_for(exc.error)))
    if status == 401:
        response.headers["WWW-Authenticate"] = "Token"
    return response
