"""
auth/directory.py -- The UserDirectory contract consumed by the auth core.

The token and user services only ever talk to this protocol, never to
UserStore directly. Any object with these methods can stand in for the
database (the test suite passes UserStore instances bound to in-memory SQLite).

Contract:
  - Lookups return the record or NotFound.
  - insert() and update() return UniquenessViolation when the storage layer's
    UNIQUE constraints reject the write. Nothing is partially applied.
  - update() is one transaction: read, merge the non-None fields, write.
  - Any other storage fault is raised as auth.errors.Unexpected.
"""

from __future__ import annotations

from typing import Protocol

from auth.errors import NotFound, UniquenessViolation
from auth.models import UserId, UserRecord


class UserDirectory(Protocol):
    def insert(self, username: str, email: str, salt: bytes, hashed_password: bytes) -> UserId | UniquenessViolation:
        ...

    def select_security_by_email(self, email: str) -> UserRecord | NotFound:
        ...

    def select_by_id(self, user_id: UserId) -> UserRecord | NotFound:
        ...

    def select_by_username(self, username: str) -> UserRecord | NotFound:
        ...

    def update(
        self,
        user_id: UserId,
        *,
        email: str | None = None,
        username: str | None = None,
        salt: bytes | None = None,
        hashed_password: bytes | None = None,
        bio: str | None = None,
        image: str | None = None,
    ) -> UserRecord | NotFound | UniquenessViolation:
        ...

    def follow(self, follower_id: UserId, followed_id: UserId) -> None:
        ...

    def unfollow(self, follower_id: UserId, followed_id: UserId) -> None:
        ...

    def is_following(self, follower_id: UserId, followed_id: UserId) -> bool:
        ...
