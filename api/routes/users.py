"""
api/routes/users.py -- Registration, login and current-user endpoints.

Routes:
  POST /api/users         -- register; returns the new user with a token (201)
  POST /api/users/login   -- email/password login (rate limited)
  GET  /api/user          -- current user (requires auth)
  PUT  /api/user          -- update current user (requires auth)

Handlers are plain `def` so FastAPI runs them in its threadpool: key
derivation and database calls block.

Security:
  POST /users/login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.errors import unwrap
from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, NewUserRequest, UpdateUserRequest, UserBody, UserResponse
from auth.dependencies import CurrentUser, get_current_user
from auth.models import UserInfo
from auth.service import UserService

# Auth policy:
# - POST /api/users:        public
# - POST /api/users/login:  public, rate limited
# - GET  /api/user:         requires auth (get_current_user)
# - PUT  /api/user:         requires auth (get_current_user)
router = APIRouter()


def _service(request: Request) -> UserService:
    return request.app.state.user_service


def _user_response(info: UserInfo, token, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=UserResponse(user=UserBody.from_info(info, token)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/users", response_model=UserResponse, status_code=201)
def register(request: Request, body: NewUserRequest) -> JSONResponse:
    """Create an account. New accounts start with an empty bio and image."""
    new = body.user
    token = unwrap(_service(request).register(new.username, new.email, new.password))
    return _user_response(UserInfo(email=new.email, username=new.username), token, status_code=201)


@limiter.limit(login_rate_limit)  # brute-force mitigation -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/login", response_model=UserResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong email and wrong password produce the same 401.
    """
    token, info = unwrap(_service(request).login(body.user.email, body.user.password))
    return _user_response(info, token)


@router.get("/user", response_model=UserResponse)
def current_user(request: Request, current: CurrentUser = Depends(get_current_user)) -> JSONResponse:
    """Return the caller's account with the token they authenticated with."""
    info = unwrap(_service(request).get_user(current.id))
    return _user_response(info, current.token)


@router.put("/user", response_model=UserResponse)
def update_user(
    request: Request,
    body: UpdateUserRequest,
    current: CurrentUser = Depends(get_current_user),
) -> JSONResponse:
    """Update any subset of email, username, password, bio and image."""
    fields = body.user
    info = unwrap(
        _service(request).update_profile(
            current.id,
            email=fields.email,
            username=fields.username,
            password=fields.password,
            bio=fields.bio,
            image=fields.image,
        )
    )
    return _user_response(info, current.token)
