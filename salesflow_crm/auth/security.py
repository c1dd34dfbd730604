"""Session token codec and password hashing.

Tokens are HS256 JWTs carrying ``sub`` (user id), ``username``, ``role``,
``iat`` and ``exp``. `verify_token` never raises on attacker-controlled
input; it returns a `VerifyResult` carrying either the claims or a
`TokenFailure`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from salesflow_crm.models import ROLES, Principal, Role


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        # Unrecognized / corrupted hash in the store.
        return False


class TokenFailure(str, Enum):
    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenClaims:
    principal: Principal
    issued_at: int
    expires_at: int

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return self.expires_at - int(now.timestamp())


@dataclass(frozen=True)
class VerifyResult:
    claims: Optional[TokenClaims] = None
    failure: Optional[TokenFailure] = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


def issue_token(
    *,
    secret: str,
    user_id: int,
    username: str,
    role: Role | str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    """Sign a session token valid for ``now .. now + expires_minutes``."""
    if not secret:
        raise ValueError("jwt_secret_blank")
    role_value = Role(role).value

    now = now or datetime.now(timezone.utc)
    exp = now + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "role": role_value,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def verify_token(*, token: str | None, secret: str, now: Optional[datetime] = None) -> VerifyResult:
    if not secret:
        raise ValueError("jwt_secret_blank")
    if not token or not isinstance(token, str):
        return VerifyResult(failure=TokenFailure.MALFORMED)

    # PyJWT checks the signature before any claim, so a token signed with another
    # secret is reported as a signature failure even when it is also expired.
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_JWT_ALG],
            # Expiry is checked below: a token is still valid during its exp second.
            options={"require": ["sub", "iat", "exp"], "verify_exp": False},
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError):
        return VerifyResult(failure=TokenFailure.SIGNATURE_INVALID)
    except (jwt.PyJWTError, ValueError, TypeError):
        return VerifyResult(failure=TokenFailure.MALFORMED)

    claims = _claims_from_payload(payload)
    if claims is None:
        return VerifyResult(failure=TokenFailure.MALFORMED)

    now = now or datetime.now(timezone.utc)
    if int(now.timestamp()) > claims.expires_at:
        return VerifyResult(failure=TokenFailure.EXPIRED)
    return VerifyResult(claims=claims)


def _claims_from_payload(payload: Dict[str, Any]) -> Optional[TokenClaims]:
    username = payload.get("username")
    role = payload.get("role")
    if not isinstance(username, str) or not username:
        return None
    if role not in ROLES:
        return None
    try:
        user_id = int(payload["sub"])
        iat = int(payload["iat"])
        exp = int(payload["exp"])
    except (KeyError, TypeError, ValueError):
        return None

    return TokenClaims(
        principal=Principal(user_id=user_id, username=username, role=Role(role)),
        issued_at=iat,
        expires_at=exp,
    )
