"""Ownership-or-admin authorization.

Single-resource handlers call `require_owner_or_admin` right after loading the
row and before acting on it. List handlers narrow the query with
`owner_scope` instead of filtering results afterwards.
"""

from __future__ import annotations

from typing import Any, Optional

from salesflow_crm import errors
from salesflow_crm.models import Decision, Principal


def authorize(principal: Principal, resource_owner_id: Any) -> Decision:
    if principal.is_admin:
        return Decision.ALLOWED
    try:
        owner_id = int(resource_owner_id)
    except (TypeError, ValueError):
        return Decision.DENIED
    if principal.user_id == owner_id:
        return Decision.ALLOWED
    return Decision.DENIED


def require_owner_or_admin(principal: Principal, row: Optional[Any], *, kind: str) -> Any:
    """Return ``row`` if the principal may act on it.

    Raises NotFound when the row is missing and Forbidden when the ownership
    check fails.
    """
    if row is None:
        raise errors.NotFound(f"{kind}_not_found")
    if authorize(principal, row["owner_id"]) is Decision.DENIED:
        raise errors.Forbidden()
    return row


def owner_scope(principal: Principal) -> Optional[int]:
    """Owner id a list query must be restricted to; None means unrestricted (admin)."""
    if principal.is_admin:
        return None
    return principal.user_id
