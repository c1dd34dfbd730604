from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from salesflow_crm import errors
from salesflow_crm.db import insert_returning_id
from salesflow_crm.util.time import to_iso, utcnow_iso

from . import records

TABLE = "reminders"
ID_COLUMN = "reminder_id"

TYPES = ("email", "whatsapp", "meeting", "follow-up")
MUTABLE_FIELDS = ("client_id", "client_name", "message", "reminder_at", "type", "completed")


def public_reminder(row: Any) -> Dict[str, Any]:
    d = dict(row)
    d["completed"] = bool(d.get("completed"))
    return d


def get_reminder(conn: Any, reminder_id: int) -> Optional[Any]:
    return records.fetch_one(conn, TABLE, ID_COLUMN, reminder_id)


def list_reminders(conn: Any, *, owner_id: Optional[int]) -> List[Dict[str, Any]]:
    # Soonest first.
    rows = records.fetch_scoped(conn, TABLE, owner_id=owner_id, order_by="reminder_at ASC, reminder_id ASC")
    return [public_reminder(r) for r in rows]


def create_reminder(
    conn: Any,
    *,
    owner_id: int,
    client_id: int,
    client_name: str,
    message: str,
    reminder_at: datetime,
    type: str,
) -> Dict[str, Any]:
    if type not in TYPES:
        raise errors.ValidationError("invalid_type")
    now = utcnow_iso()
    reminder_id = insert_returning_id(
        conn,
        """
        INSERT INTO reminders (owner_id, client_id, client_name, message, reminder_at, type, completed, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?)
        """,
        (int(owner_id), int(client_id), client_name, message, to_iso(reminder_at), type, 0, now, now),
        id_column=ID_COLUMN,
    )
    return public_reminder(get_reminder(conn, reminder_id))


def update_reminder(conn: Any, reminder_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    if "type" in changes and changes["type"] not in TYPES:
        raise errors.ValidationError("invalid_type")
    row_changes = dict(changes)
    if isinstance(row_changes.get("reminder_at"), datetime):
        row_changes["reminder_at"] = to_iso(row_changes["reminder_at"])
    if "completed" in row_changes:
        row_changes["completed"] = 1 if row_changes["completed"] else 0
    records.update_fields(conn, TABLE, ID_COLUMN, reminder_id, row_changes, allowed=MUTABLE_FIELDS)
    return public_reminder(get_reminder(conn, reminder_id))


def delete_reminder(conn: Any, reminder_id: int) -> int:
    return records.delete_where(conn, TABLE, ID_COLUMN, reminder_id)


def refresh_client_name(conn: Any, client_id: int, client_name: str) -> None:
    conn.execute(
        "UPDATE reminders SET client_name=?, updated_at=? WHERE client_id=?",
        (client_name, utcnow_iso(), int(client_id)),
    )


def delete_for_client(conn: Any, client_id: int) -> int:
    return records.delete_where(conn, TABLE, "client_id", client_id)


def delete_owned_by(conn: Any, owner_id: int) -> int:
    return records.delete_where(conn, TABLE, "owner_id", owner_id)
