import pytest
from jose import jwt
from passlib.hash import bcrypt

from registrar.config import settings
from registrar.domain.errors import ConfigurationError, TokenExpiredError, TokenInvalidError
from registrar.infrastructure.security import (
    PasswordHasher, create_access_token, decode_token, generate_temp_password,
)
from registrar.interfaces.http.schemas import PASSWORD_PATTERN


def test_hash_and_verify():
    """A password verifies against its own hash only"""
    hasher = PasswordHasher()
    digest = hasher.hash("Secret123")
    assert digest != "Secret123"
    assert hasher.verify("Secret123", digest)
    assert not hasher.verify("Wrong123", digest)


def test_long_passwords_differing_after_72_bytes():
    """Bytes beyond bcrypt's 72-byte window still count"""
    hasher = PasswordHasher()
    prefix = "Aa1" + "x" * 69
    digest = hasher.hash(prefix + "RealTail")
    assert hasher.verify(prefix + "RealTail", digest)
    assert not hasher.verify(prefix + "WrongTail", digest)


def test_legacy_bcrypt_hash_still_verifies():
    legacy = bcrypt.using(rounds=4).hash("Secret123")
    hasher = PasswordHasher()
    assert hasher.verify("Secret123", legacy)
    assert not hasher.verify("Wrong123", legacy)


def test_verify_without_hash():
    """Accounts with no password never verify"""
    assert not PasswordHasher().verify("anything", None)
    assert not PasswordHasher().verify("anything", "not-a-bcrypt-hash")


def test_token_roundtrip():
    token = create_access_token(7, "ada@example.com", "STUDENT")
    payload = decode_token(token)
    assert payload.user_id == 7
    assert payload.email == "ada@example.com"
    assert payload.role == "STUDENT"
    assert payload.exp > payload.iat


def test_expired_token():
    token = create_access_token(7, "ada@example.com", "STUDENT", minutes=-1)
    with pytest.raises(TokenExpiredError):
        decode_token(token)


def test_tampered_token():
    """Changing a single character of the signature invalidates the token"""
    token = create_access_token(7, "ada@example.com", "STUDENT")
    head, body, sig = token.split(".")
    sig = sig[:-2] + ("AA" if sig[-2:] != "AA" else "BB")
    with pytest.raises(TokenInvalidError):
        decode_token(".".join([head, body, sig]))


def test_token_signed_with_other_secret():
    forged = jwt.encode({"userId": 1, "email": "x@example.com", "role": "ADMIN"}, "other-secret", algorithm="HS256")
    with pytest.raises(TokenInvalidError):
        decode_token(forged)


def test_garbage_token():
    with pytest.raises(TokenInvalidError):
        decode_token("not.a.token")


def test_token_missing_claims():
    token = jwt.encode({"email": "x@example.com"}, settings.JWT_SECRET, algorithm="HS256")
    with pytest.raises(TokenInvalidError):
        decode_token(token)


def test_missing_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", None)
    with pytest.raises(ConfigurationError):
        create_access_token(1, "x@example.com", "STUDENT")


def test_temp_password_meets_policy():
    for _ in range(20):
        password = generate_temp_password()
        assert len(password) == 12
        assert PASSWORD_PATTERN.match(password)
