"""Unit tests for auth/crypto.py -- key derivation, salts, and verification.

Covers:
- derive_secret() is deterministic and has the requested length
- Different salt, password, rounds, or length all change the output
- verify_secret() accepts the right password and rejects any other
- generate_salt() never returns fewer than 16 bytes and does not repeat
- new_credential() / check_credential() round trip, fresh salt per credential
"""

import pytest

from auth.crypto import (
    MIN_SALT_LENGTH,
    check_credential,
    derive_secret,
    generate_salt,
    new_credential,
    verify_secret,
)
from core.config import KdfConfig

ROUNDS = 1
KEY_LENGTH = 32
SALT = b"0123456789abcdef"


class TestDeriveSecret:
    def test_same_inputs_same_output(self):
        first = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        second = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        assert first == second

    @pytest.mark.parametrize("key_length", [16, 32, 64])
    def test_output_has_requested_length(self, key_length):
        assert len(derive_secret(b"password123", SALT, ROUNDS, key_length)) == key_length

    def test_salt_changes_output(self):
        other_salt = b"fedcba9876543210"
        assert derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH) != derive_secret(
            b"password123", other_salt, ROUNDS, KEY_LENGTH
        )

    def test_password_changes_output(self):
        assert derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH) != derive_secret(
            b"password124", SALT, ROUNDS, KEY_LENGTH
        )

    def test_rounds_change_output(self):
        assert derive_secret(b"password123", SALT, 1, KEY_LENGTH) != derive_secret(
            b"password123", SALT, 2, KEY_LENGTH
        )

    def test_output_is_not_the_password(self):
        derived = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        assert b"password123" not in derived


class TestVerifySecret:
    def test_correct_password_verifies(self):
        expected = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        assert verify_secret(b"password123", SALT, expected, ROUNDS, KEY_LENGTH) is True

    @pytest.mark.parametrize("wrong", [b"password124", b"Password123", b"", b"password1234"])
    def test_other_passwords_fail(self, wrong):
        expected = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        assert verify_secret(wrong, SALT, expected, ROUNDS, KEY_LENGTH) is False

    def test_wrong_salt_fails(self):
        expected = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        assert verify_secret(b"password123", b"fedcba9876543210", expected, ROUNDS, KEY_LENGTH) is False

    def test_empty_expected_fails(self):
        assert verify_secret(b"password123", SALT, b"", ROUNDS, KEY_LENGTH) is False

    def test_truncated_expected_fails(self):
        expected = derive_secret(b"password123", SALT, ROUNDS, KEY_LENGTH)
        assert verify_secret(b"password123", SALT, expected[:-1], ROUNDS, KEY_LENGTH) is False


class TestGenerateSalt:
    def test_default_is_128_bits(self):
        assert len(generate_salt()) == MIN_SALT_LENGTH == 16

    def test_short_request_is_raised_to_minimum(self):
        assert len(generate_salt(4)) == MIN_SALT_LENGTH

    def test_longer_request_is_honoured(self):
        assert len(generate_salt(32)) == 32

    def test_salts_do_not_repeat(self):
        salts = {generate_salt() for _ in range(100)}
        assert len(salts) == 100


class TestCredential:
    def test_round_trip(self, kdf: KdfConfig):
        credential = new_credential("password123", kdf)
        assert len(credential.salt) == kdf.salt_length
        assert len(credential.derived) == kdf.key_length
        assert check_credential("password123", credential, kdf)
        assert not check_credential("password124", credential, kdf)

    def test_same_password_gets_fresh_salt(self, kdf: KdfConfig):
        first = new_credential("password123", kdf)
        second = new_credential("password123", kdf)
        assert first.salt != second.salt
        assert first.derived != second.derived

    def test_unicode_password(self, kdf: KdfConfig):
        credential = new_credential("pässwörd-密码", kdf)
        assert check_credential("pässwörd-密码", credential, kdf)
        assert not check_credential("passwörd-密码", credential, kdf)
