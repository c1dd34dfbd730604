"""Session gate: the one choke point in front of every protected route.

Installed as HTTP middleware by the application factory. For each request it

1. lets public paths through untouched,
2. reads the session token (cookie first, then `Authorization: Bearer`),
3. verifies it with the token codec (no DB access),
4. on failure answers with a redirect to the login page (browser
   navigations) or a 401 JSON body (API calls), clearing a bad cookie,
5. on success stores the `Principal` on ``request.state.principal`` and,
   when the token is close to expiry, re-issues the cookie on the way out.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import urlencode

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from salesflow_crm.config import Config

from .security import TokenFailure, issue_token, verify_token

_log = logging.getLogger(__name__)

PUBLIC_PATHS = {
    "/login",
    "/register",
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/redoc",
    "/openapi.json",
}
PUBLIC_PREFIXES = ("/api/auth/", "/static/")

_FAILURE_DETAIL = {
    TokenFailure.EXPIRED: "token_expired",
    TokenFailure.SIGNATURE_INVALID: "token_invalid",
    TokenFailure.MALFORMED: "token_malformed",
}


def _debug(msg: str) -> None:
    _log.debug("[gate] %s", msg)


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    if path.startswith(PUBLIC_PREFIXES):
        return True
    # Files like .js, .css, favicon.ico. Never under /api/: `/api/clients/2.0` is a route.
    if path.startswith("/api/"):
        return False
    last = path.rsplit("/", 1)[-1]
    return "." in last


# -----------------------------
# Cookies
# -----------------------------


def cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "strict").lower()
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def set_session_cookie(response: Response, *, token: str, cfg: Config) -> None:
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "strict").lower(),
        secure=cookie_secure(cfg),
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60,
        path=cfg.AUTH_COOKIE_PATH or "/",
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


def clear_session_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH or "/",
        domain=cfg.AUTH_COOKIE_DOMAIN,
        secure=cookie_secure(cfg),
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "strict").lower(),
    )


# -----------------------------
# Gate
# -----------------------------


def _read_token(request: Request, cfg: Config) -> Tuple[Optional[str], bool]:
    """Return (token, from_cookie)."""
    token = request.cookies.get(cfg.AUTH_COOKIE_NAME)
    if token:
        return token, True
    auth = request.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip(), False
    return None, False


def _wants_html(request: Request) -> bool:
    return "text/html" in (request.headers.get("accept") or "").lower()


def _login_redirect_url(request: Request, cfg: Config) -> str:
    next_url = request.url.path
    if request.url.query:
        next_url += "?" + request.url.query
    return f"{cfg.AUTH_LOGIN_URL}?{urlencode({'next': next_url})}"


def reject(request: Request, cfg: Config, detail: str, *, clear_cookie: bool) -> Response:
    if _wants_html(request) or cfg.AUTH_REDIRECT_API_CALLS:
        response: Response = RedirectResponse(url=_login_redirect_url(request, cfg), status_code=303)
    else:
        response = JSONResponse(
            {"detail": detail},
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if clear_cookie:
        # A corrupted cookie would otherwise bounce the client back here forever.
        clear_session_cookie(response, cfg)
    return response


def install_session_gate(app: FastAPI, cfg: Config) -> None:
    refresh_seconds = max(0, int(cfg.AUTH_TOKEN_REFRESH_MINUTES)) * 60

    @app.middleware("http")
    async def session_gate(request: Request, call_next):
        path = request.url.path
        if request.method == "OPTIONS" or is_public_path(path):
            return await call_next(request)

        token, from_cookie = _read_token(request, cfg)
        if not token:
            _debug(f"{request.method} {path}: missing_token")
            return reject(request, cfg, "missing_token", clear_cookie=False)

        result = verify_token(token=token, secret=cfg.AUTH_JWT_SECRET)
        if not result.ok:
            detail = _FAILURE_DETAIL[result.failure]
            _log.info("[gate] %s %s rejected: %s", request.method, path, detail)
            return reject(request, cfg, detail, clear_cookie=from_cookie)

        claims = result.claims
        request.state.principal = claims.principal
        request.state.token_claims = claims

        response = await call_next(request)

        if from_cookie and refresh_seconds and claims.remaining_seconds() < refresh_seconds:
            p = claims.principal
            fresh = issue_token(
                secret=cfg.AUTH_JWT_SECRET,
                user_id=p.user_id,
                username=p.username,
                role=p.role,
                expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
            )
            set_session_cookie(response, token=fresh, cfg=cfg)
            _debug(f"refreshed session for user_id={p.user_id}")
        return response
