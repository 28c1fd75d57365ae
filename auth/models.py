"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these dataclasses only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass

# Numeric identity assigned by the directory on insert.
UserId = int


@dataclass(frozen=True)
class Credential:
    """Salt plus the key derived from (password, salt). Plaintext is never kept."""

    salt: bytes
    derived: bytes


@dataclass
class UserRecord:
    """A stored user row, including its credential material.

    Only the store and the service see this type. Anything leaving the auth
    package is converted to UserInfo first so salt and derived key never reach
    a response body.
    """

    id: UserId
    email: str
    username: str
    salt: bytes
    hashed_password: bytes
    bio: str = ""
    image: str = ""

    def info(self) -> UserInfo:
        return UserInfo(email=self.email, username=self.username, bio=self.bio, image=self.image)


@dataclass(frozen=True)
class UserInfo:
    """Public view of a user: everything except identity and secrets."""

    email: str
    username: str
    bio: str = ""
    image: str = ""


@dataclass(frozen=True)
class Profile:
    """A user as seen by another user, with the viewer's follow state."""

    username: str
    bio: str
    image: str
    following: bool = False


@dataclass(frozen=True)
class JwtToken:
    """An encoded, signed JWT. Never persisted server-side."""

    value: str
