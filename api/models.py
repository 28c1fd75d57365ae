"""
API request and response models for the Conduit REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal
domain representation. Route handlers map between the two.

Request fields are plain strings on purpose: length and format rules live in
auth/validation.py so the service reports them as InvalidInput with the same
messages whether it is called over HTTP or directly.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import JwtToken, Profile, UserInfo

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class NewUser(BaseModel):
    username: str
    email: str
    password: str


class NewUserRequest(BaseModel):
    """Request body for POST /api/users."""

    user: NewUser


class LoginUser(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    """Request body for POST /api/users/login."""

    user: LoginUser


class UpdateUser(BaseModel):
    """Every field optional; omitted or null fields keep their stored value."""

    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    bio: Optional[str] = None
    image: Optional[str] = None


class UpdateUserRequest(BaseModel):
    """Request body for PUT /api/user."""

    user: UpdateUser


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    token: str
    username: str
    bio: str
    image: str

    @classmethod
    def from_info(cls, info: UserInfo, token: JwtToken | str) -> "UserBody":
        value = token.value if isinstance(token, JwtToken) else token
        return cls(email=info.email, token=value, username=info.username, bio=info.bio, image=info.image)


class UserResponse(BaseModel):
    user: UserBody


class ProfileBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    bio: str
    image: str
    following: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileBody":
        return cls(username=profile.username, bio=profile.bio, image=profile.image, following=profile.following)


class ProfileResponse(BaseModel):
    profile: ProfileBody


class ErrorBody(BaseModel):
    body: list[str]


class ErrorResponse(BaseModel):
    """Uniform error envelope: {"errors": {"body": [...]}}."""

    errors: ErrorBody


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]
