from __future__ import annotations

from typing import Any, Dict, List, Optional

from salesflow_crm import errors
from salesflow_crm.db import insert_returning_id
from salesflow_crm.util.time import utcnow_iso

from . import quotations, records, reminders

TABLE = "clients"
ID_COLUMN = "client_id"

PRIORITIES = ("none", "1 month", "2 months", "3 months")
MUTABLE_FIELDS = ("name", "email", "phone", "requirements", "priority")


def public_client(row: Any) -> Dict[str, Any]:
    return dict(row)


def get_client(conn: Any, client_id: int) -> Optional[Any]:
    return records.fetch_one(conn, TABLE, ID_COLUMN, client_id)


def list_clients(conn: Any, *, owner_id: Optional[int]) -> List[Dict[str, Any]]:
    rows = records.fetch_scoped(conn, TABLE, owner_id=owner_id, order_by="created_at DESC, client_id DESC")
    return [public_client(r) for r in rows]


def create_client(
    conn: Any,
    *,
    owner_id: int,
    name: str,
    email: str,
    phone: str,
    requirements: str,
    priority: str,
) -> Dict[str, Any]:
    if priority not in PRIORITIES:
        raise errors.ValidationError("invalid_priority")
    now = utcnow_iso()
    client_id = insert_returning_id(
        conn,
        """
        INSERT INTO clients (owner_id, name, email, phone, requirements, priority, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?)
        """,
        (int(owner_id), name, email, phone, requirements, priority, now, now),
        id_column=ID_COLUMN,
    )
    return public_client(get_client(conn, client_id))


def update_client(conn: Any, client_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    if "priority" in changes and changes["priority"] not in PRIORITIES:
        raise errors.ValidationError("invalid_priority")
    before = get_client(conn, client_id)
    records.update_fields(conn, TABLE, ID_COLUMN, client_id, changes, allowed=MUTABLE_FIELDS)

    # Quotations and reminders keep a copy of the client's display name.
    new_name = changes.get("name")
    if new_name is not None and before is not None and new_name != before["name"]:
        quotations.refresh_client_name(conn, client_id, new_name)
        reminders.refresh_client_name(conn, client_id, new_name)

    return public_client(get_client(conn, client_id))


def delete_client(conn: Any, client_id: int) -> Dict[str, int]:
    """Delete a client together with its quotations and reminders."""
    counts = {
        "quotations": quotations.delete_for_client(conn, client_id),
        "reminders": reminders.delete_for_client(conn, client_id),
    }
    records.delete_where(conn, TABLE, ID_COLUMN, client_id)
    return counts


def delete_owned_by(conn: Any, owner_id: int) -> Dict[str, int]:
    """Delete every client of `owner_id`, each with its quotations and reminders.

    Linked records go whoever owns them; an admin may have attached some.
    """
    rows = conn.execute("SELECT client_id FROM clients WHERE owner_id=?", (int(owner_id),)).fetchall()
    counts = {"clients": 0, "quotations": 0, "reminders": 0}
    for row in rows:
        linked = delete_client(conn, int(row["client_id"]))
        counts["quotations"] += linked["quotations"]
        counts["reminders"] += linked["reminders"]
        counts["clients"] += 1
    return counts
