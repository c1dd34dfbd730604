from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from salesflow_crm.auth.deps import get_cfg, get_current_principal
from salesflow_crm.auth.policy import owner_scope, require_owner_or_admin
from salesflow_crm.config import Config
from salesflow_crm.crm import clients
from salesflow_crm.db import connect
from salesflow_crm.models import Principal
from salesflow_crm.schemas import ClientCreate, ClientUpdate

router = APIRouter()


@router.get("")
def list_clients(
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return clients.list_clients(conn, owner_id=owner_scope(principal))


@router.post("", status_code=201)
def create_client(
    payload: ClientCreate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        return clients.create_client(conn, owner_id=principal.user_id, **payload.model_dump())


@router.get("/{client_id}")
def get_client(
    client_id: int,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = require_owner_or_admin(principal, clients.get_client(conn, client_id), kind="client")
        return clients.public_client(row)


@router.put("/{client_id}")
def update_client(
    client_id: int,
    payload: ClientUpdate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    changes = payload.changes()
    with connect(cfg.DB_DSN) as conn:
        require_owner_or_admin(principal, clients.get_client(conn, client_id), kind="client")
        return clients.update_client(conn, client_id, changes)


@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        require_owner_or_admin(principal, clients.get_client(conn, client_id), kind="client")
        deleted = clients.delete_client(conn, client_id)
    return {"message": "client_deleted", "deleted": deleted}


def linked_client(conn: Any, principal: Principal, client_id: int) -> Any:
    """Client a quotation/reminder is being attached to.

    Missing -> 404, not the caller's (and caller not admin) -> 403.
    """
    return require_owner_or_admin(principal, clients.get_client(conn, client_id), kind="client")
