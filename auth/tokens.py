"""
auth/tokens.py -- JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS512. Claims are {"id", "iat", "exp", "iss"}; the
       numeric user id lives in the "id" claim. Tokens are never stored
       server-side and there is no revocation list -- a token is valid until
       its "exp" passes or its subject disappears from the directory.

  Verification order: signature/structure, "id" claim, "exp" claim, expiry,
       then a directory lookup of the subject. The first failing check decides
       the TokenInvalid reason. python-jose's own exp check is switched off so
       the clock is an explicit argument (tests pass a fixed `now`).

  Config: TokenService receives a frozen TokenConfig at construction. Nothing
       here reads settings or environment variables.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from jose import jwt
from jose.exceptions import JOSEError

from auth.directory import UserDirectory
from auth.errors import InvalidReason, NotFound, TokenGenerationFailure, TokenInvalid
from auth.models import JwtToken, UserId
from core.config import TokenConfig

logger = logging.getLogger("conduit.auth")

_ALGORITHM = "HS512"

# python-jose validates these itself unless told not to. Expiry is checked
# below against an explicit clock; iat/nbf are informational.
_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_aud": False,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Stateless encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: UserId,
    *,
    issuer: str,
    issued_at: datetime,
    ttl_seconds: int,
    secret: str,
) -> JwtToken | TokenGenerationFailure:
    """Encode and sign a token for user_id.

    Deterministic: the same arguments always produce the same token. Two
    tokens differ only through their user id or timestamps.
    """
    iat = int(issued_at.timestamp())
    claims = {
        "id": user_id,
        "iat": iat,
        "exp": iat + ttl_seconds,
        "iss": issuer,
    }
    try:
        return JwtToken(jwt.encode(claims, secret, algorithm=_ALGORITHM))
    except JOSEError as exc:
        logger.error("JWT signing failed for user %s: %s", user_id, exc)
        return TokenGenerationFailure(str(exc) or "invalid secret key")


def decode_access_token(token: str, *, secret: str, now: datetime) -> UserId | TokenInvalid:
    """Run the stateless checks and return the claimed user id.

    Does not consult the directory; see TokenService.verify() for that.
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[_ALGORITHM], options=_DECODE_OPTIONS)
    except JOSEError as exc:
        return TokenInvalid(InvalidReason.BAD_SIGNATURE, f"JWT token invalid: {exc}")

    user_id = claims.get("id")
    if not _is_int(user_id):
        return TokenInvalid(InvalidReason.MISSING_CLAIM, "id missing from JWT token")

    expires_at = claims.get("exp")
    if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
        return TokenInvalid(InvalidReason.MISSING_CLAIM, "exp missing from JWT token")

    if now.timestamp() >= expires_at:
        return TokenInvalid(InvalidReason.EXPIRED, "JWT token expired")

    return user_id


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TokenService:
    """Issues tokens and resolves them back to existing user ids.

    Holds only immutable configuration and a reference to the directory, so a
    single instance is shared by every request thread.
    """

    def __init__(self, config: TokenConfig, directory: UserDirectory) -> None:
        self._config = config
        self._directory = directory

    def issue(self, user_id: UserId, now: datetime | None = None) -> JwtToken | TokenGenerationFailure:
        return create_access_token(
            user_id,
            issuer=self._config.issuer,
            issued_at=now or _utcnow(),
            ttl_seconds=self._config.ttl_seconds,
            secret=self._config.secret,
        )

    def verify(self, token: str, now: datetime | None = None) -> UserId | TokenInvalid:
        """Return the token's user id, or the reason it cannot be accepted.

        A structurally valid, unexpired token whose user no longer exists is
        UNKNOWN_SUBJECT. Storage faults propagate as Unexpected.
        """
        result = decode_access_token(token, secret=self._config.secret, now=now or _utcnow())
        if isinstance(result, TokenInvalid):
            logger.info("Rejected token: %s", result.reason.value)
            return result

        record = self._directory.select_by_id(result)
        if isinstance(record, NotFound):
            logger.info("Rejected token: user %s no longer exists", result)
            return TokenInvalid(InvalidReason.UNKNOWN_SUBJECT, f"User with userId={result} not found")
        return record.id
