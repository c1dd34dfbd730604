from __future__ import annotations

from typing import Any, Dict, List, Optional

from salesflow_crm import errors
from salesflow_crm.db import insert_returning_id
from salesflow_crm.util.time import utcnow_iso

from . import records

TABLE = "quotations"
ID_COLUMN = "quotation_id"

STATUSES = ("draft", "sent", "accepted", "rejected")
MUTABLE_FIELDS = ("client_id", "client_name", "details", "amount", "status")


def public_quotation(row: Any) -> Dict[str, Any]:
    d = dict(row)
    d["amount"] = float(d["amount"])
    return d


def get_quotation(conn: Any, quotation_id: int) -> Optional[Any]:
    return records.fetch_one(conn, TABLE, ID_COLUMN, quotation_id)


def list_quotations(conn: Any, *, owner_id: Optional[int]) -> List[Dict[str, Any]]:
    rows = records.fetch_scoped(conn, TABLE, owner_id=owner_id, order_by="created_at DESC, quotation_id DESC")
    return [public_quotation(r) for r in rows]


def create_quotation(
    conn: Any,
    *,
    owner_id: int,
    client_id: int,
    client_name: str,
    details: str,
    amount: float,
    status: str,
) -> Dict[str, Any]:
    if status not in STATUSES:
        raise errors.ValidationError("invalid_status")
    now = utcnow_iso()
    quotation_id = insert_returning_id(
        conn,
        """
        INSERT INTO quotations (owner_id, client_id, client_name, details, amount, status, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?)
        """,
        (int(owner_id), int(client_id), client_name, details, float(amount), status, now, now),
        id_column=ID_COLUMN,
    )
    return public_quotation(get_quotation(conn, quotation_id))


def update_quotation(conn: Any, quotation_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    if "status" in changes and changes["status"] not in STATUSES:
        raise errors.ValidationError("invalid_status")
    records.update_fields(conn, TABLE, ID_COLUMN, quotation_id, changes, allowed=MUTABLE_FIELDS)
    return public_quotation(get_quotation(conn, quotation_id))


def delete_quotation(conn: Any, quotation_id: int) -> int:
    return records.delete_where(conn, TABLE, ID_COLUMN, quotation_id)


def refresh_client_name(conn: Any, client_id: int, client_name: str) -> None:
    conn.execute(
        "UPDATE quotations SET client_name=?, updated_at=? WHERE client_id=?",
        (client_name, utcnow_iso(), int(client_id)),
    )


def delete_for_client(conn: Any, client_id: int) -> int:
    return records.delete_where(conn, TABLE, "client_id", client_id)


def delete_owned_by(conn: Any, owner_id: int) -> int:
    return records.delete_where(conn, TABLE, "owner_id", owner_id)
