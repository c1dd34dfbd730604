"""Row helpers shared by the owned-resource tables.

Every owned table has an integer primary key, an immutable ``owner_id`` and
``created_at`` / ``updated_at`` columns.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from salesflow_crm import errors
from salesflow_crm.util.time import utcnow_iso


def fetch_one(conn: Any, table: str, id_column: str, record_id: int) -> Optional[Any]:
    return conn.execute(
        f"SELECT * FROM {table} WHERE {id_column}=?",
        (int(record_id),),
    ).fetchone()


def fetch_scoped(
    conn: Any,
    table: str,
    *,
    owner_id: Optional[int],
    order_by: str,
) -> List[Any]:
    """All rows, or only ``owner_id``'s rows when an owner is given."""
    if owner_id is None:
        return conn.execute(f"SELECT * FROM {table} ORDER BY {order_by}").fetchall()
    return conn.execute(
        f"SELECT * FROM {table} WHERE owner_id=? ORDER BY {order_by}",
        (int(owner_id),),
    ).fetchall()


def update_fields(
    conn: Any,
    table: str,
    id_column: str,
    record_id: int,
    changes: Dict[str, Any],
    *,
    allowed: Iterable[str],
) -> None:
    """Apply an explicit field set. Unknown keys (owner_id included) are rejected."""
    allowed_set = set(allowed)
    unknown = sorted(k for k in changes if k not in allowed_set)
    if unknown:
        raise errors.ValidationError(f"unknown_fields: {', '.join(unknown)}")
    if not changes:
        raise errors.ValidationError("no_update_data")

    fields = list(changes.items())
    fields.append(("updated_at", utcnow_iso()))
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [int(record_id)]
    conn.execute(f"UPDATE {table} SET {sets} WHERE {id_column}=?", params)


def delete_where(conn: Any, table: str, column: str, value: int) -> int:
    cur = conn.execute(f"DELETE FROM {table} WHERE {column}=?", (int(value),))
    return int(cur.rowcount or 0)
