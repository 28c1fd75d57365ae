"""
auth/service.py -- Registration, login, token authentication and profile updates.

UserService is the only entry point the HTTP layer uses. Every public method
returns its success value or a DomainError; nothing recoverable is raised.
Storage faults surface as auth.errors.Unexpected from the directory and are
left to propagate.

Enumeration resistance:
  login() answers PasswordMismatch both for an unknown email and for a wrong
  password. For the unknown-email case it still derives a key against a dummy
  credential built at construction, so both paths cost one key derivation and
  response time does not reveal whether the email is registered.

Password changes:
  update_profile(password=...) generates a fresh salt along with the new
  derived key. A salt is never reused across passwords.
"""

from __future__ import annotations

import logging

from auth.crypto import check_credential, new_credential
from auth.directory import UserDirectory
from auth.errors import DomainError, EmptyUpdate, NotFound, PasswordMismatch
from auth.models import Credential, JwtToken, Profile, UserId, UserInfo, UserRecord
from auth.tokens import TokenService
from auth.validation import validate, validate_login
from core.config import KdfConfig

logger = logging.getLogger("conduit.auth")

_DUMMY_PASSWORD = "conduit_timing_dummy"


class UserService:
    def __init__(self, directory: UserDirectory, tokens: TokenService, kdf: KdfConfig) -> None:
        self._directory = directory
        self._tokens = tokens
        self._kdf = kdf
        self._dummy: Credential = new_credential(_DUMMY_PASSWORD, kdf)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> JwtToken | DomainError:
        """Create an account and return a token for it.

        Fails with InvalidInput before touching the directory, or with
        UniquenessViolation if the username or email is taken.
        """
        invalid = validate(username=username, email=email, password=password)
        if invalid is not None:
            return invalid

        credential = new_credential(password, self._kdf)
        user_id = self._directory.insert(username, email, credential.salt, credential.derived)
        if isinstance(user_id, DomainError):
            logger.info("Registration rejected: %s already taken", user_id.field)
            return user_id

        logger.info("Registered user %s (id=%s)", username, user_id)
        return self._tokens.issue(user_id)

    def login(self, email: str, password: str) -> tuple[JwtToken, UserInfo] | DomainError:
        """Check an email/password pair and return a fresh token plus the user's info."""
        invalid = validate_login(email, password)
        if invalid is not None:
            return invalid

        record = self._directory.select_security_by_email(email)
        if isinstance(record, NotFound):
            # Equalize timing -- do NOT return before running the KDF.
            check_credential(password, self._dummy, self._kdf)
            logger.info("Login failed: bad credentials")
            return PasswordMismatch()

        if not check_credential(password, Credential(record.salt, record.hashed_password), self._kdf):
            logger.info("Login failed: bad credentials")
            return PasswordMismatch()

        token = self._tokens.issue(record.id)
        if isinstance(token, DomainError):
            return token
        return token, record.info()

    def authenticate(self, token: str) -> UserId | DomainError:
        """Resolve a bearer token to the id of an existing user."""
        return self._tokens.verify(token)

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def get_user(self, user_id: UserId) -> UserInfo | DomainError:
        record = self._directory.select_by_id(user_id)
        if isinstance(record, NotFound):
            return record
        return record.info()

    def update_profile(
        self,
        user_id: UserId,
        *,
        email: str | None = None,
        username: str | None = None,
        password: str | None = None,
        bio: str | None = None,
        image: str | None = None,
    ) -> UserInfo | DomainError:
        """Change any subset of the account fields; None means "leave as is"."""
        if all(value is None for value in (email, username, password, bio, image)):
            return EmptyUpdate(f"Cannot update user with {user_id} with only null values")

        invalid = validate(username=username, email=email, password=password, bio=bio, image=image)
        if invalid is not None:
            return invalid

        salt = hashed_password = None
        if password is not None:
            credential = new_credential(password, self._kdf)
            salt, hashed_password = credential.salt, credential.derived

        record = self._directory.update(
            user_id,
            email=email,
            username=username,
            salt=salt,
            hashed_password=hashed_password,
            bio=bio,
            image=image,
        )
        if isinstance(record, DomainError):
            return record
        logger.info("Updated user %s", user_id)
        return record.info()

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, username: str, viewer_id: UserId | None = None) -> Profile | DomainError:
        """Return username's profile; `following` is relative to viewer_id."""
        record = self._directory.select_by_username(username)
        if isinstance(record, NotFound):
            return record
        return self._profile(record, viewer_id)

    def follow(self, viewer_id: UserId, username: str) -> Profile | DomainError:
        record = self._directory.select_by_username(username)
        if isinstance(record, NotFound):
            return record
        self._directory.follow(viewer_id, record.id)
        return self._profile(record, viewer_id)

    def unfollow(self, viewer_id: UserId, username: str) -> Profile | DomainError:
        record = self._directory.select_by_username(username)
        if isinstance(record, NotFound):
            return record
        self._directory.unfollow(viewer_id, record.id)
        return self._profile(record, viewer_id)

    def _profile(self, record: UserRecord, viewer_id: UserId | None) -> Profile:
        following = viewer_id is not None and self._directory.is_following(viewer_id, record.id)
        return Profile(username=record.username, bio=record.bio, image=record.image, following=following)
