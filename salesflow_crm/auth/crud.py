from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email

from salesflow_crm import errors
from salesflow_crm.config import Config
from salesflow_crm.crm import clients, quotations, reminders
from salesflow_crm.db import connect, insert_returning_id
from salesflow_crm.models import ROLES, Role
from salesflow_crm.util.time import utcnow_iso

from .security import hash_password, issue_token, verify_password

_log = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3


def _debug(msg: str) -> None:
    _log.info("[auth] %s", msg)


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def normalize_email(email: str) -> str:
    raw = (email or "").strip()
    if not raw:
        raise errors.ValidationError("email_blank")
    try:
        info = validate_email(raw, check_deliverability=False)
    except EmailNotValidError:
        raise errors.ValidationError("invalid_email")
    return info.normalized.lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    # Convenience flag used by the frontend for gating.
    d["is_admin"] = d.get("role") == Role.ADMIN.value
    return d


def _is_integrity_error(exc: Exception) -> bool:
    if isinstance(exc, sqlite3.IntegrityError):
        return True
    # psycopg2 unique_violation
    return getattr(exc, "pgcode", None) == "23505"


# -----------------------------
# Credential store lookups
# -----------------------------


def get_user_by_username(conn: Any, username: str) -> Optional[Any]:
    u = normalize_username(username)
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE username=?",
        (u,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()


def list_users(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC, user_id DESC").fetchall()
    return [public_user(r) for r in rows]


def _conflict_detail(
    conn: Any,
    *,
    username: str | None,
    email: str | None,
    exclude_user_id: int | None = None,
) -> Optional[str]:
    """Return 'username_exists' / 'email_exists' if either is taken by another user."""
    exclude = int(exclude_user_id) if exclude_user_id is not None else -1
    if username:
        r = conn.execute(
            "SELECT 1 FROM users WHERE username=? AND user_id<>?",
            (username, exclude),
        ).fetchone()
        if r is not None:
            return "username_exists"
    if email:
        r = conn.execute(
            "SELECT 1 FROM users WHERE email=? AND user_id<>?",
            (email, exclude),
        ).fetchone()
        if r is not None:
            return "email_exists"
    return None


# -----------------------------
# Principal directory
# -----------------------------


def create_user(
    conn: Any,
    *,
    username: str,
    email: str,
    password: str,
    role: str = Role.USER.value,
    min_password_length: int = 6,
) -> Dict[str, Any]:
    u = normalize_username(username)
    if len(u) < MIN_USERNAME_LENGTH:
        raise errors.ValidationError("username_too_short")
    e = normalize_email(email)
    if len(password or "") < int(min_password_length):
        raise errors.ValidationError("password_too_short")
    if role not in ROLES:
        raise errors.ValidationError("invalid_role")

    taken = _conflict_detail(conn, username=u, email=e)
    if taken:
        raise errors.Conflict(taken)

    now = utcnow_iso()
    try:
        user_id = insert_returning_id(
            conn,
            """
            INSERT INTO users (username, email, password_hash, role, created_at, updated_at)
            VALUES (?,?,?,?,?,?)
            """,
            (u, e, hash_password(password), role, now, now),
            id_column="user_id",
        )
    except Exception as exc:
        # Lost a race against a concurrent registration with the same name/email.
        if _is_integrity_error(exc):
            raise errors.Conflict("user_exists") from exc
        raise

    row = get_user_by_id(conn, user_id)
    if row is None:
        raise errors.Unexpected("user_insert_failed")
    return public_user(row)


def register(
    conn: Any,
    *,
    username: str,
    email: str,
    password: str,
    min_password_length: int = 6,
) -> Dict[str, Any]:
    """Self-serve registration. New accounts always get the non-privileged role."""
    return create_user(
        conn,
        username=username,
        email=email,
        password=password,
        role=Role.USER.value,
        min_password_length=min_password_length,
    )


def verify_user_credentials(conn: Any, username: str, password: str) -> Optional[Any]:
    row = get_user_by_username(conn, username)
    if row is None:
        return None
    if not verify_password(password, str(row["password_hash"])):
        return None
    return row


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE user_id=?",
        (now, now, int(user_id)),
    )


def authenticate(conn: Any, cfg: Config, username: str, password: str) -> Tuple[str, Dict[str, Any]]:
    """Check a username/password pair and mint a session token.

    Unknown usernames and wrong passwords raise the same `InvalidCredentials`
    so callers cannot enumerate accounts.
    """
    row = verify_user_credentials(conn, username, password)
    if row is None:
        _debug(f"Failed login for username={normalize_username(username)!r}")
        raise errors.InvalidCredentials()

    touch_last_login(conn, int(row["user_id"]))
    token = issue_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=int(row["user_id"]),
        username=str(row["username"]),
        role=str(row["role"]),
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    fresh = get_user_by_id(conn, int(row["user_id"]))
    return token, public_user(fresh if fresh is not None else row)


def change_password(
    conn: Any,
    *,
    user_id: int,
    current_password: str,
    new_password: str,
    min_password_length: int = 6,
) -> None:
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise errors.NotFound("user_not_found")
    if not verify_password(current_password, str(row["password_hash"])):
        raise errors.IncorrectCurrentPassword()
    if len(new_password or "") < int(min_password_length):
        raise errors.ValidationError("password_too_short")

    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET password_hash=?, updated_at=? WHERE user_id=?",
        (hash_password(new_password), now, int(user_id)),
    )


def _apply_user_fields(conn: Any, user_id: int, fields: List[Tuple[str, Any]]) -> None:
    if not fields:
        return
    fields.append(("updated_at", utcnow_iso()))
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [int(user_id)]
    try:
        conn.execute(f"UPDATE users SET {sets} WHERE user_id=?", params)
    except Exception as exc:
        if _is_integrity_error(exc):
            raise errors.Conflict("user_exists") from exc
        raise


def _identity_fields(
    conn: Any,
    *,
    user_id: int,
    username: str | None,
    email: str | None,
) -> List[Tuple[str, Any]]:
    fields: List[Tuple[str, Any]] = []
    u = normalize_username(username) if username is not None else None
    e = normalize_email(email) if email is not None else None
    if u is not None and len(u) < MIN_USERNAME_LENGTH:
        raise errors.ValidationError("username_too_short")

    taken = _conflict_detail(conn, username=u, email=e, exclude_user_id=user_id)
    if taken:
        raise errors.Conflict(taken)

    if u is not None:
        fields.append(("username", u))
    if e is not None:
        fields.append(("email", e))
    return fields


def update_profile(
    conn: Any,
    *,
    user_id: int,
    username: str | None = None,
    email: str | None = None,
    current_password: str | None = None,
    new_password: str | None = None,
    min_password_length: int = 6,
) -> Dict[str, Any]:
    """Self-service update. A new password always requires the current one."""
    if new_password and not current_password:
        raise errors.ValidationError("current_password_required")
    if username is None and email is None and not new_password:
        raise errors.ValidationError("no_update_data")

    row = get_user_by_id(conn, user_id)
    if row is None:
        raise errors.NotFound("user_not_found")

    if new_password:
        change_password(
            conn,
            user_id=user_id,
            current_password=str(current_password),
            new_password=new_password,
            min_password_length=min_password_length,
        )

    fields = _identity_fields(conn, user_id=user_id, username=username, email=email)
    _apply_user_fields(conn, user_id, fields)

    updated = get_user_by_id(conn, user_id)
    assert updated is not None
    return public_user(updated)


def admin_update_user(
    conn: Any,
    *,
    user_id: int,
    username: str | None = None,
    email: str | None = None,
    role: str | None = None,
) -> Dict[str, Any]:
    """Admin edit of another account. Passwords are not settable on this path."""
    if username is None and email is None and role is None:
        raise errors.ValidationError("no_update_data")
    if role is not None and role not in ROLES:
        raise errors.ValidationError("invalid_role")

    row = get_user_by_id(conn, user_id)
    if row is None:
        raise errors.NotFound("user_not_found")

    fields = _identity_fields(conn, user_id=user_id, username=username, email=email)
    if role is not None:
        fields.append(("role", role))
    _apply_user_fields(conn, user_id, fields)

    updated = get_user_by_id(conn, user_id)
    assert updated is not None
    return public_user(updated)


def delete_user(conn: Any, user_id: int) -> Dict[str, int]:
    """Delete an account and every resource it owns.

    The deletes run inside the caller's transaction (see db.connect), so a
    failure part-way rolls the whole cascade back.
    """
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise errors.NotFound("user_not_found")

    # Clients first: that also removes records attached to them by other users.
    cascade = clients.delete_owned_by(conn, user_id)
    counts = {
        "reminders": cascade["reminders"] + reminders.delete_owned_by(conn, user_id),
        "quotations": cascade["quotations"] + quotations.delete_owned_by(conn, user_id),
        "clients": cascade["clients"],
    }
    conn.execute("DELETE FROM users WHERE user_id=?", (int(user_id),))
    _debug(f"Deleted user {user_id} and associated data: {counts}")
    return counts


def bootstrap_admin_if_needed(cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    Controlled via environment variables so a new clone has a deterministic way to log in.

    - AUTH_BOOTSTRAP_ADMIN_USERNAME (default: admin)
    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD

    This only runs when there are 0 rows in `users`.
    """

    with connect(cfg.DB_DSN) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
        if int(n) > 0:
            return None

        username = normalize_username(cfg.AUTH_BOOTSTRAP_ADMIN_USERNAME or "")
        email = (cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL or "").strip()
        password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD or ""

        # If env explicitly clears these, don't create anything.
        if not username or not email or not password:
            return None

        return create_user(
            conn,
            username=username,
            email=email,
            password=password,
            role=Role.ADMIN.value,
            min_password_length=cfg.AUTH_MIN_PASSWORD_LENGTH,
        )
