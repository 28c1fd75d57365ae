"""
auth/validation.py -- Structural checks on user-supplied account fields.

Each check collects every message that applies to a field (an empty username
is both blank and too short), and the collected field errors are returned as
one InvalidInput value. Nothing here touches the directory.

Limits:
  username  1..25 characters, not blank
  email     <= 350 characters, not blank, must look like an address
  password  8..100 characters, not blank (on login: not blank only)

Every field, bio and image included, must also be encodable as UTF-8.
"""

from __future__ import annotations

import re

from auth.errors import FieldViolation, InvalidInput

USERNAME_MIN, USERNAME_MAX = 1, 25
EMAIL_MAX = 350
PASSWORD_MIN, PASSWORD_MAX = 8, 100

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Reported alone: the other messages would echo text that cannot be encoded.
_NOT_TEXT = "is not valid text"


def _length(value: str, minimum: int | None, maximum: int | None) -> list[str]:
    errors: list[str] = []
    if minimum is not None and len(value) < minimum:
        errors.append(f"is too short (minimum is {minimum} characters)")
    if maximum is not None and len(value) > maximum:
        errors.append(f"is too long (maximum is {maximum} characters)")
    return errors


def _not_blank(value: str) -> list[str]:
    return ["Cannot be blank"] if not value.strip() else []


def _encodable(value: str) -> bool:
    """False for strings holding lone surrogates, which JSON allows but UTF-8 cannot carry."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def username_errors(username: str) -> list[str]:
    if not _encodable(username):
        return [_NOT_TEXT]
    return _not_blank(username) + _length(username, USERNAME_MIN, USERNAME_MAX)


def email_errors(email: str) -> list[str]:
    if not _encodable(email):
        return [_NOT_TEXT]
    errors = _not_blank(email) + _length(email, None, EMAIL_MAX)
    # An over-long address is reported for its length only.
    if not errors or errors == ["Cannot be blank"]:
        if not _EMAIL_RE.match(email):
            errors.append(f"'{email}' is invalid email")
    return errors


def password_errors(password: str) -> list[str]:
    if not _encodable(password):
        return [_NOT_TEXT]
    return _not_blank(password) + _length(password, PASSWORD_MIN, PASSWORD_MAX)


def text_errors(value: str) -> list[str]:
    return [] if _encodable(value) else [_NOT_TEXT]


_CHECKS = {
    "username": username_errors,
    "email": email_errors,
    "password": password_errors,
    "bio": text_errors,
    "image": text_errors,
}


def validate(**fields: str | None) -> InvalidInput | None:
    """Validate the given fields, skipping any passed as None.

    Returns InvalidInput listing every failing field in argument order, or
    None when all supplied fields pass.
    """
    violations = []
    for name, value in fields.items():
        if value is None:
            continue
        errors = _CHECKS[name](value)
        if errors:
            violations.append(FieldViolation(name, tuple(errors)))
    return InvalidInput(tuple(violations)) if violations else None


def validate_login(email: str, password: str) -> InvalidInput | None:
    """Login checks the email shape but only requires the password to be present.

    Length rules apply when a password is set, not when one is presented: an
    attempt with a too-short password is simply a wrong password.
    """
    violations = []
    errors = email_errors(email)
    if errors:
        violations.append(FieldViolation("email", tuple(errors)))
    errors = _not_blank(password) if _encodable(password) else [_NOT_TEXT]
    if errors:
        violations.append(FieldViolation("password", tuple(errors)))
    return InvalidInput(tuple(violations)) if violations else None
