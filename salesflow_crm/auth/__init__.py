"""Authentication / authorization.

- Users table (username/email/password hash + role)
- Stateless JWT sessions carried in an httpOnly `auth_token` cookie
- A session gate middleware in front of every protected route
- An ownership-or-admin check applied by every resource handler

`Authorization: Bearer <token>` is accepted as well, for scripts / API clients.
"""

from .deps import get_current_principal, require_admin
from .crud import authenticate, bootstrap_admin_if_needed, change_password, create_user, register
from .policy import authorize, owner_scope, require_owner_or_admin

__all__ = [
    "get_current_principal",
    "require_admin",
    "authenticate",
    "bootstrap_admin_if_needed",
    "change_password",
    "create_user",
    "register",
    "authorize",
    "owner_scope",
    "require_owner_or_admin",
]
