from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from salesflow_crm import errors
from salesflow_crm.auth.crud import get_user_by_id, public_user, update_profile
from salesflow_crm.auth.deps import get_cfg, get_current_principal
from salesflow_crm.config import Config
from salesflow_crm.db import connect
from salesflow_crm.models import Principal
from salesflow_crm.schemas import ProfileUpdate

router = APIRouter()


@router.get("")
def get_profile(
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, principal.user_id)
    # The token can outlive its account; there is no revocation list.
    if row is None:
        raise errors.NotFound("user_not_found")
    return public_user(row)


@router.put("")
def put_profile(
    payload: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        return update_profile(
            conn,
            user_id=principal.user_id,
            username=payload.username,
            email=payload.email,
            current_password=payload.current_password,
            new_password=payload.new_password,
            min_password_length=cfg.AUTH_MIN_PASSWORD_LENGTH,
        )
