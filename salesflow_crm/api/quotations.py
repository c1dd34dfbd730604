from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from salesflow_crm.api.clients import linked_client
from salesflow_crm.auth.deps import get_cfg, get_current_principal
from salesflow_crm.auth.policy import owner_scope, require_owner_or_admin
from salesflow_crm.config import Config
from salesflow_crm.crm import quotations
from salesflow_crm.db import connect
from salesflow_crm.models import Principal
from salesflow_crm.schemas import QuotationCreate, QuotationUpdate

router = APIRouter()


@router.get("")
def list_quotations(
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return quotations.list_quotations(conn, owner_id=owner_scope(principal))


@router.post("", status_code=201)
def create_quotation(
    payload: QuotationCreate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        client = linked_client(conn, principal, payload.client_id)
        return quotations.create_quotation(
            conn,
            owner_id=principal.user_id,
            client_id=payload.client_id,
            client_name=str(client["name"]),
            details=payload.details,
            amount=payload.amount,
            status=payload.status,
        )


@router.get("/{quotation_id}")
def get_quotation(
    quotation_id: int,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = require_owner_or_admin(principal, quotations.get_quotation(conn, quotation_id), kind="quotation")
        return quotations.public_quotation(row)


@router.put("/{quotation_id}")
def update_quotation(
    quotation_id: int,
    payload: QuotationUpdate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    changes = payload.changes()
    with connect(cfg.DB_DSN) as conn:
        row = require_owner_or_admin(principal, quotations.get_quotation(conn, quotation_id), kind="quotation")
        if "client_id" in changes and int(changes["client_id"]) != int(row["client_id"]):
            client = linked_client(conn, principal, changes["client_id"])
            changes["client_name"] = str(client["name"])
        return quotations.update_quotation(conn, quotation_id, changes)


@router.delete("/{quotation_id}")
def delete_quotation(
    quotation_id: int,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        require_owner_or_admin(principal, quotations.get_quotation(conn, quotation_id), kind="quotation")
        quotations.delete_quotation(conn, quotation_id)
    return {"message": "quotation_deleted"}
