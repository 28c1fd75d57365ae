"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The token is read from the Authorization header. Both schemes are accepted:
  Authorization: Token <jwt>    -- the Conduit client convention
  Authorization: Bearer <jwt>   -- generic API clients

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated. The 401
body never says which check failed (bad signature, expired, deleted user).

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request

from auth.errors import DomainError
from auth.models import UserId
from auth.service import UserService

_SCHEMES = ("token", "bearer")


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller: resolved id plus the token they presented."""

    id: UserId
    token: str


def token_from_request(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() in _SCHEMES and token.strip():
        return token.strip()
    return None


def try_get_current_user(request: Request) -> CurrentUser | None:
    """Authenticate the request. Returns None on any failure, never raises."""
    token = token_from_request(request)
    if token is None:
        return None
    service: UserService = request.app.state.user_service
    result = service.authenticate(token)
    if isinstance(result, DomainError):
        return None
    return CurrentUser(id=result, token=token)


def get_current_user(request: Request) -> CurrentUser:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/user")
        def route(current: CurrentUser = Depends(get_current_user)): ...
    """
    current = try_get_current_user(request)
    if current is None:
        raise HTTPException(
            status_code=401,
            detail={"body": ["Unauthorized"]},
            headers={"WWW-Authenticate": "Token"},
        )
    return current
