"""
auth/crypto.py -- Password key derivation and verification.

Security design decisions:
  KDF: bcrypt-pbkdf via bcrypt.kdf(). It is a PBKDF2 construction whose inner
       function is the bcrypt hash, so every round pays bcrypt's expensive key
       schedule. Rounds and output length are tunable (KdfConfig) and stored
       nowhere -- changing them invalidates existing credentials, so they are
       fixed per deployment.

  Salt: secrets.token_bytes(), at least 16 bytes (128 bits), generated once
       per credential. Stored next to the derived key.

  Verify: the derived key is recomputed and compared with hmac.compare_digest
       so comparison time does not depend on the position of the first
       mismatching byte.

Nothing here raises a domain error. Functions return bytes or bool and the
caller decides what a failed verification means.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hmac
import secrets

import bcrypt

from auth.models import Credential
from core.config import KdfConfig

MIN_SALT_LENGTH = 16


def generate_salt(length: int = MIN_SALT_LENGTH) -> bytes:
    """Return `length` cryptographically random bytes (never fewer than 16)."""
    return secrets.token_bytes(max(length, MIN_SALT_LENGTH))


def derive_secret(password: bytes, salt: bytes, rounds: int, key_length: int) -> bytes:
    """Derive a fixed-length key from a password and salt.

    Same inputs always give the same output. bcrypt.kdf warns when called with
    fewer than 50 rounds; the round count comes from validated configuration,
    so that warning is suppressed here.
    """
    return bcrypt.kdf(
        password=password,
        salt=salt,
        desired_key_bytes=key_length,
        rounds=rounds,
        ignore_few_rounds=True,
    )


def verify_secret(password: bytes, salt: bytes, expected: bytes, rounds: int, key_length: int) -> bool:
    """Return True if `password` derives to `expected` under `salt`.

    bcrypt.kdf refuses an empty password, so that case is a plain mismatch.
    """
    if not password or not expected:
        return False
    candidate = derive_secret(password, salt, rounds, key_length)
    return hmac.compare_digest(candidate, expected)


def new_credential(password: str, config: KdfConfig) -> Credential:
    """Salt and derive a fresh credential for a plaintext password."""
    salt = generate_salt(config.salt_length)
    derived = derive_secret(password.encode("utf-8"), salt, config.rounds, config.key_length)
    return Credential(salt=salt, derived=derived)


def check_credential(password: str, credential: Credential, config: KdfConfig) -> bool:
    """Verify a plaintext password against a stored credential."""
    return verify_secret(
        password.encode("utf-8"),
        credential.salt,
        credential.derived,
        config.rounds,
        config.key_length,
    )
