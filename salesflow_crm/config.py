import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _default_cookie_secure() -> bool:
    explicit = _env_bool("AUTH_COOKIE_SECURE", None)
    if explicit is not None:
        return explicit
    if os.environ.get("APP_ENV", "").strip().lower() == "production":
        return True
    return os.environ.get("PUBLIC_APP_URL", "").lower().startswith("https://")


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read from the environment once, when the module is imported.
    Tests (and scripts) can build their own instance by passing keyword
    overrides, e.g. ``Config(DB_DSN=..., AUTH_JWT_SECRET=...)``.

    IMPORTANT: the JWT secret is process-wide and never mutated at runtime.
    Rotating it (redeploy) invalidates every outstanding session.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set CRM_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: CRM_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("CRM_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("CRM_DB_PATH", "./salesflow_crm.sqlite")
    )

    APP_ENV: str = os.environ.get("APP_ENV", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = (
        os.environ.get("AUTH_JWT_SECRET") or os.environ.get("JWT_SECRET") or "dev_change_me"
    )
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "60"))

    # Sliding refresh: the gate re-issues a valid token whose remaining lifetime
    # drops below this many minutes. 0 disables refresh.
    AUTH_TOKEN_REFRESH_MINUTES: int = int(os.environ.get("AUTH_TOKEN_REFRESH_MINUTES", "15"))

    AUTH_MIN_PASSWORD_LENGTH: int = int(os.environ.get("AUTH_MIN_PASSWORD_LENGTH", "6"))

    # Bootstrap first admin user if users table is empty
    AUTH_BOOTSTRAP_ADMIN_USERNAME: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_USERNAME", "admin")
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@salesflow-crm.com")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "admin123")

    # Session cookie
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "auth_token")
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "strict")  # lax|strict|none

    # If AUTH_COOKIE_SECURE is unset, cookies are Secure in production
    # (APP_ENV=production) or when PUBLIC_APP_URL is https.
    PUBLIC_APP_URL: str = os.environ.get("PUBLIC_APP_URL", "http://localhost:8000")
    AUTH_COOKIE_SECURE: bool = _default_cookie_secure()

    # Where browser navigations are sent when the session is missing or invalid.
    AUTH_LOGIN_URL: str = os.environ.get("AUTH_LOGIN_URL", "/login")

    # The gate answers JSON API calls with 401 by default. Set this to keep the
    # legacy behavior of redirecting every unauthenticated request to the login page.
    AUTH_REDIRECT_API_CALLS: bool = _env_bool("AUTH_REDIRECT_API_CALLS", False) is True

    # -----------------
    # CORS (development)
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )


def load_config() -> Config:
    return Config()
