from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from salesflow_crm import errors
from salesflow_crm.auth.crud import admin_update_user, delete_user, get_user_by_id, list_users, public_user
from salesflow_crm.auth.deps import get_cfg, require_admin
from salesflow_crm.config import Config
from salesflow_crm.db import connect
from salesflow_crm.models import Principal
from salesflow_crm.schemas import AdminUserUpdate

# Admin only.
router = APIRouter()


@router.get("")
def get_users(
    _admin: Principal = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return list_users(conn)


@router.get("/{user_id}")
def get_user(
    user_id: int,
    _admin: Principal = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, user_id)
    if row is None:
        raise errors.NotFound("user_not_found")
    return public_user(row)


@router.put("/{user_id}")
def put_user(
    user_id: int,
    payload: AdminUserUpdate,
    _admin: Principal = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    changes = payload.changes()
    with connect(cfg.DB_DSN) as conn:
        return admin_update_user(conn, user_id=user_id, **changes)


@router.delete("/{user_id}")
def remove_user(
    user_id: int,
    admin: Principal = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    if admin.user_id == user_id:
        raise errors.Forbidden("cannot_delete_self")
    with connect(cfg.DB_DSN) as conn:
        deleted = delete_user(conn, user_id)
    return {"message": "user_deleted", "deleted": deleted}
