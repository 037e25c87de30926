from datetime import timedelta

import pytest
from jose import jwt

from auth_service.errors import InvalidToken
from auth_service.models import Role
from auth_service.security import (
    Identity,
    TokenService,
    generate_reset_token,
    hash_reset_token,
)


def test_password_hash_never_equals_plaintext(hasher):
    hashed = hasher.hash("secret1")
    assert hashed != "secret1"
    assert hashed.startswith("$2")
    assert hasher.verify("secret1", hashed)
    assert not hasher.verify("secret2", hashed)


def test_password_hash_is_salted(hasher):
    assert hasher.hash("secret1") != hasher.hash("secret1")


@pytest.mark.parametrize("role", [Role.USER, Role.ADMIN])
def test_verify_returns_issued_identity(tokens, role):
    token = tokens.issue("abc123", role)
    assert tokens.verify(token) == Identity(id="abc123", role=role)


def test_token_carries_issue_and_expiry_times(tokens):
    claims = jwt.get_unverified_claims(tokens.issue("abc123", Role.USER))
    assert claims["sub"] == "abc123"
    assert claims["role"] == "User"
    assert claims["exp"] - claims["iat"] == 24 * 60 * 60


def test_expired_token_is_rejected(tokens):
    token = tokens.issue("abc123", Role.USER, expires_delta=timedelta(seconds=-5))
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_tampered_payload_is_rejected(tokens):
    header, payload, signature = tokens.issue("abc123", Role.USER).split(".")
    forged = TokenService("other-secret").issue("abc123", Role.ADMIN).split(".")[1]
    with pytest.raises(InvalidToken):
        tokens.verify(".".join([header, forged, signature]))


def test_tampered_signature_is_rejected(tokens):
    header, payload, signature = tokens.issue("abc123", Role.USER).split(".")
    middle = len(signature) // 2
    swapped = "A" if signature[middle] != "A" else "B"
    signature = signature[:middle] + swapped + signature[middle + 1:]
    with pytest.raises(InvalidToken):
        tokens.verify(".".join([header, payload, signature]))


def test_token_signed_with_other_secret_is_rejected(tokens):
    token = TokenService("other-secret").issue("abc123", Role.USER)
    with pytest.raises(InvalidToken):
        tokens.verify(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_token_is_rejected(tokens, token):
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_unknown_role_is_rejected(tokens):
    token = jwt.encode({"sub": "abc123", "role": "Root"}, "test-secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_token_service_requires_secret():
    with pytest.raises(ValueError):
        TokenService("")


def test_reset_token_hash_hides_token():
    token = generate_reset_token()
    assert len(token) == 64
    digest = hash_reset_token(token)
    assert digest != token
    assert digest == hash_reset_token(token)
    assert generate_reset_token() != token
