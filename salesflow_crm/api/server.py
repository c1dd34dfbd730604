from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salesflow_crm import errors
from salesflow_crm.auth.crud import bootstrap_admin_if_needed
from salesflow_crm.auth.gate import install_session_gate
from salesflow_crm.config import Config, load_config
from salesflow_crm.db import init_db

from salesflow_crm.api import auth_routes, clients, profile, quotations, reminders, users

_log = logging.getLogger(__name__)


def _debug(msg: str) -> None:
    _log.info("[api] %s", msg)


def configure_logging(cfg: Config) -> None:
    level = getattr(logging, str(cfg.LOG_LEVEL or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(errors.CRMError)
    async def _crm_error(request: Request, exc: errors.CRMError) -> JSONResponse:
        if exc.status_code >= 500:
            _log.error("[api] %s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Rejected input is not echoed back: it may be a password or a non-finite float.
        problems = [{"loc": e.get("loc"), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
        return JSONResponse(
            {"detail": "invalid_input", "errors": jsonable_encoder(problems)},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        _log.exception("[api] %s %s: unexpected error", request.method, request.url.path)
        return JSONResponse({"detail": "internal_error"}, status_code=500)


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()
    configure_logging(cfg)

    app = FastAPI(title="SalesFlow CRM", version="0.1.0")
    # Make config available to auth deps and routers.
    app.state.cfg = cfg

    _install_error_handlers(app)

    # Added before CORS so CORS stays the outermost layer and answers preflights.
    install_session_gate(app, cfg)

    # CORS is mainly needed for local development (separate frontend dev server).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def _on_startup() -> None:
        # Ensure schema exists.
        init_db(cfg.DB_DSN)

        # Bootstrap first admin if needed (only when users table is empty)
        boot = bootstrap_admin_if_needed(cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: username={boot.get('username')} role={boot.get('role')}")

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    app.include_router(auth_routes.router, prefix="/api/auth", tags=["auth"])
    app.include_router(profile.router, prefix="/api/profile", tags=["profile"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(clients.router, prefix="/api/clients", tags=["clients"])
    app.include_router(quotations.router, prefix="/api/quotations", tags=["quotations"])
    app.include_router(reminders.router, prefix="/api/reminders", tags=["reminders"])

    return app


app = create_app()
