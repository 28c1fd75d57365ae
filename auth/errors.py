"""
auth/errors.py -- Typed failure values for the authentication core.

Every core operation returns either its success value or one of the
DomainError dataclasses below. They are plain values, not exceptions: callers
branch with isinstance() and the HTTP layer maps each kind to a status code.

Unexpected is the one exception in this module. It wraps lower-level I/O
faults (database down, driver error) that no caller can recover from. The
code that wraps the fault logs it; the HTTP layer answers with a generic 500.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DomainError:
    """Marker base class for every recoverable failure value."""

    __slots__ = ()


@dataclass(frozen=True)
class NotFound(DomainError):
    entity: str
    key: str

    @property
    def description(self) -> str:
        return f"{self.entity.capitalize()} with {self.key} not found"


@dataclass(frozen=True)
class UniquenessViolation(DomainError):
    field: str
    value: str

    @property
    def description(self) -> str:
        if self.field == "email":
            return f"{self.value} is already registered"
        return f"{self.field.capitalize()} {self.value} already exists"


@dataclass(frozen=True)
class PasswordMismatch(DomainError):
    """Login failed. Deliberately carries no detail about which check failed."""

    description: str = "Invalid email or password"


class InvalidReason(str, Enum):
    BAD_SIGNATURE = "bad_signature"
    MISSING_CLAIM = "missing_claim"
    EXPIRED = "expired"
    UNKNOWN_SUBJECT = "unknown_subject"


@dataclass(frozen=True)
class TokenInvalid(DomainError):
    reason: InvalidReason
    detail: str = ""

    @property
    def description(self) -> str:
        return self.detail or f"JWT token invalid: {self.reason.value}"


@dataclass(frozen=True)
class TokenGenerationFailure(DomainError):
    reason: str

    @property
    def description(self) -> str:
        return f"JWT signing error: {self.reason}"


@dataclass(frozen=True)
class FieldViolation:
    field: str
    violations: tuple[str, ...]


@dataclass(frozen=True)
class InvalidInput(DomainError):
    errors: tuple[FieldViolation, ...] = field(default_factory=tuple)

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]

    @property
    def description(self) -> str:
        return "; ".join(f"{e.field}: {', '.join(e.violations)}" for e in self.errors)


@dataclass(frozen=True)
class EmptyUpdate(DomainError):
    description: str


class Unexpected(Exception):
    """A non-recoverable lower-level failure, already logged where it was wrapped."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
