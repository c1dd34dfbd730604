from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from salesflow_crm.auth.crud import authenticate, register
from salesflow_crm.auth.deps import get_cfg
from salesflow_crm.auth.gate import clear_session_cookie, set_session_cookie
from salesflow_crm.config import Config
from salesflow_crm.db import connect
from salesflow_crm.schemas import LoginRequest, RegisterRequest

# Everything under /api/auth/ is public: the session gate lets it through.
# Handlers are plain `def` so password hashing runs in the threadpool, not on the event loop.
router = APIRouter()


@router.post("/login")
def auth_login(payload: LoginRequest, response: Response, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        token, user = authenticate(conn, cfg, payload.username, payload.password)

    set_session_cookie(response, token=token, cfg=cfg)
    return {"message": "login_successful", "user": user}


@router.post("/register", status_code=201)
def auth_register(payload: RegisterRequest, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    """Create a new (non-admin) account. Does not log the caller in."""
    with connect(cfg.DB_DSN) as conn:
        user = register(
            conn,
            username=payload.username,
            email=payload.email,
            password=payload.password,
            min_password_length=cfg.AUTH_MIN_PASSWORD_LENGTH,
        )
    return {"message": "user_registered", "user": user}


@router.post("/logout")
def auth_logout(response: Response, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    """Clear the session cookie. The token itself stays valid until it expires."""
    clear_session_cookie(response, cfg)
    return {"message": "logout_successful"}
