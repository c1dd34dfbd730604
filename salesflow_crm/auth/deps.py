from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from salesflow_crm import errors
from salesflow_crm.config import Config
from salesflow_crm.models import Principal


def get_cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_current_principal(request: Request) -> Principal:
    """Identity attached by the session gate.

    Routes under the gate always have one; this only fails if a protected
    route is mounted on a public path by mistake.
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise errors.Unauthenticated()
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise errors.Forbidden("admin_required")
    return principal
