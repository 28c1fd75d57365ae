"""
api/routes/profiles.py -- Public profiles and the follow graph.

Routes:
  GET    /api/profiles/{username}          -- profile; auth optional
  POST   /api/profiles/{username}/follow   -- follow (requires auth)
  DELETE /api/profiles/{username}/follow   -- unfollow (requires auth)

`following` is computed relative to the caller; anonymous callers always see
false.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.errors import DomainErrorResponse, unwrap
from api.models import ProfileBody, ProfileResponse
from auth.dependencies import CurrentUser, get_current_user, try_get_current_user
from auth.errors import FieldViolation, InvalidInput
from auth.service import UserService

router = APIRouter()


def _service(request: Request) -> UserService:
    return request.app.state.user_service


def _require_username(username: str) -> str:
    if not username.strip():
        raise DomainErrorResponse(InvalidInput((FieldViolation("username", ("Missing username parameter in request",)),)))
    return username


@router.get("/profiles/{username}", response_model=ProfileResponse)
def get_profile(
    request: Request,
    username: str,
    current: Optional[CurrentUser] = Depends(try_get_current_user),
) -> ProfileResponse:
    viewer_id = current.id if current is not None else None
    profile = unwrap(_service(request).get_profile(_require_username(username), viewer_id))
    return ProfileResponse(profile=ProfileBody.from_profile(profile))


@router.post("/profiles/{username}/follow", response_model=ProfileResponse)
def follow(
    request: Request,
    username: str,
    current: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    profile = unwrap(_service(request).follow(current.id, _require_username(username)))
    return ProfileResponse(profile=ProfileBody.from_profile(profile))


@router.delete("/profiles/{username}/follow", response_model=ProfileResponse)
def unfollow(
    request: Request,
    username: str,
    current: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    profile = unwrap(_service(request).unfollow(current.id, _require_username(username)))
    return ProfileResponse(profile=ProfileBody.from_profile(profile))
