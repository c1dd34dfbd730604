from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from salesflow_crm.api.clients import linked_client
from salesflow_crm.auth.deps import get_cfg, get_current_principal
from salesflow_crm.auth.policy import owner_scope, require_owner_or_admin
from salesflow_crm.config import Config
from salesflow_crm.crm import reminders
from salesflow_crm.db import connect
from salesflow_crm.models import Principal
from salesflow_crm.schemas import ReminderCreate, ReminderToggle, ReminderUpdate

router = APIRouter()


@router.get("")
def list_reminders(
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return reminders.list_reminders(conn, owner_id=owner_scope(principal))


@router.post("", status_code=201)
def create_reminder(
    payload: ReminderCreate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    # Notification delivery is out of scope; reminders are stored records only.
    with connect(cfg.DB_DSN) as conn:
        client = linked_client(conn, principal, payload.client_id)
        return reminders.create_reminder(
            conn,
            owner_id=principal.user_id,
            client_id=payload.client_id,
            client_name=str(client["name"]),
            message=payload.message,
            reminder_at=payload.reminder_at,
            type=payload.type,
        )


@router.get("/{reminder_id}")
def get_reminder(
    reminder_id: int,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = require_owner_or_admin(principal, reminders.get_reminder(conn, reminder_id), kind="reminder")
        return reminders.public_reminder(row)


@router.put("/{reminder_id}")
def update_reminder(
    reminder_id: int,
    payload: ReminderUpdate,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    changes = payload.changes()
    with connect(cfg.DB_DSN) as conn:
        row = require_owner_or_admin(principal, reminders.get_reminder(conn, reminder_id), kind="reminder")
        if "client_id" in changes and int(changes["client_id"]) != int(row["client_id"]):
            client = linked_client(conn, principal, changes["client_id"])
            changes["client_name"] = str(client["name"])
        return reminders.update_reminder(conn, reminder_id, changes)


@router.patch("/{reminder_id}")
def toggle_reminder(
    reminder_id: int,
    payload: ReminderToggle,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        require_owner_or_admin(principal, reminders.get_reminder(conn, reminder_id), kind="reminder")
        return reminders.update_reminder(conn, reminder_id, {"completed": payload.completed})


@router.delete("/{reminder_id}")
def delete_reminder(
    reminder_id: int,
    principal: Principal = Depends(get_current_principal),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        require_owner_or_admin(principal, reminders.get_reminder(conn, reminder_id), kind="reminder")
        reminders.delete_reminder(conn, reminder_id)
    return {"message": "reminder_deleted"}
