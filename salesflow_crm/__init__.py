"""SalesFlow CRM - Backend.

Small business CRM: clients, quotations and reminders owned by users, behind a
cookie-carried JWT session.

Core concepts:
- Every owned record has exactly one owner (`owner_id`), fixed at creation.
- A user may act on a record if they own it or hold the admin role.
- Sessions are stateless: identity comes from the token, not the DB.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
