import base64
import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from salesflow_crm.auth.security import (
    TokenFailure,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)
from salesflow_crm.models import Role

SECRET = "codec-secret"


def _b64(d: dict) -> str:
    raw = json.dumps(d, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def test_issue_then_verify_returns_identity():
    token = issue_token(secret=SECRET, user_id=7, username="alice", role="user", expires_minutes=60)
    result = verify_token(token=token, secret=SECRET)

    assert result.ok
    assert result.failure is None
    p = result.claims.principal
    assert (p.user_id, p.username, p.role) == (7, "alice", Role.USER)
    assert result.claims.expires_at - result.claims.issued_at == 3600


def test_expired_token_is_reported_as_expired():
    past = datetime.now(timezone.utc) - timedelta(hours=3)
    token = issue_token(secret=SECRET, user_id=1, username="alice", role="user", expires_minutes=60, now=past)

    result = verify_token(token=token, secret=SECRET)
    assert not result.ok
    assert result.failure is TokenFailure.EXPIRED


def test_token_is_valid_through_its_expiry_second():
    issued = datetime(2020, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    token = issue_token(secret=SECRET, user_id=1, username="alice", role="user", expires_minutes=60, now=issued)
    expires = issued + timedelta(minutes=60)

    assert verify_token(token=token, secret=SECRET, now=issued).ok
    assert verify_token(token=token, secret=SECRET, now=expires).ok
    assert verify_token(token=token, secret=SECRET, now=expires + timedelta(milliseconds=999)).ok
    late = verify_token(token=token, secret=SECRET, now=expires + timedelta(seconds=1))
    assert late.failure is TokenFailure.EXPIRED


def test_other_secret_is_signature_invalid_never_malformed():
    token = issue_token(secret="someone-else", user_id=1, username="alice", role="admin", expires_minutes=60)
    assert verify_token(token=token, secret=SECRET).failure is TokenFailure.SIGNATURE_INVALID

    # Signature is checked before expiry.
    past = datetime.now(timezone.utc) - timedelta(hours=3)
    old = issue_token(secret="someone-else", user_id=1, username="alice", role="user", expires_minutes=60, now=past)
    assert verify_token(token=old, secret=SECRET).failure is TokenFailure.SIGNATURE_INVALID


def test_tampered_payload_is_signature_invalid():
    token = issue_token(secret=SECRET, user_id=5, username="bob", role="user", expires_minutes=60)
    header, payload, sig = token.split(".")
    claims = jwt.decode(token, SECRET, algorithms=["HS256"])
    claims["role"] = "admin"
    forged = ".".join([header, _b64(claims), sig])

    assert verify_token(token=forged, secret=SECRET).failure is TokenFailure.SIGNATURE_INVALID


def test_unsigned_token_is_rejected():
    header = _b64({"alg": "none", "typ": "JWT"})
    payload = _b64({"sub": "1", "username": "mallory", "role": "admin", "iat": 0, "exp": 4102444800})
    forged = f"{header}.{payload}."

    result = verify_token(token=forged, secret=SECRET)
    assert not result.ok
    assert result.failure in (TokenFailure.SIGNATURE_INVALID, TokenFailure.MALFORMED)


@pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "not a token at all", "...."])
def test_garbage_is_malformed_and_never_raises(garbage):
    result = verify_token(token=garbage, secret=SECRET)
    assert result.failure is TokenFailure.MALFORMED


def test_unknown_role_or_missing_claims_are_malformed():
    now = int(datetime.now(timezone.utc).timestamp())
    bad_role = jwt.encode(
        {"sub": "1", "username": "alice", "role": "superuser", "iat": now, "exp": now + 600},
        SECRET,
        algorithm="HS256",
    )
    no_exp = jwt.encode({"sub": "1", "username": "alice", "role": "user", "iat": now}, SECRET, algorithm="HS256")
    no_username = jwt.encode({"sub": "1", "role": "user", "iat": now, "exp": now + 600}, SECRET, algorithm="HS256")

    for token in (bad_role, no_exp, no_username):
        assert verify_token(token=token, secret=SECRET).failure is TokenFailure.MALFORMED


def test_issue_rejects_unknown_role_and_blank_secret():
    with pytest.raises(ValueError):
        issue_token(secret=SECRET, user_id=1, username="alice", role="owner", expires_minutes=60)
    with pytest.raises(ValueError):
        issue_token(secret="", user_id=1, username="alice", role="user", expires_minutes=60)


def test_password_hash_is_salted_and_verifies():
    h1 = hash_password("secret1")
    h2 = hash_password("secret1")

    assert h1 != h2
    assert "secret1" not in h1
    assert verify_password("secret1", h1)
    assert not verify_password("secret2", h1)
    assert not verify_password("secret1", "not-a-hash")
    assert not verify_password("", h1)
