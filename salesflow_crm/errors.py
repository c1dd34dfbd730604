"""Error taxonomy shared by the auth core and the resource handlers.

Each class carries the HTTP status it maps to and a stable snake_case
`detail` string; the API layer renders them as ``{"detail": ...}``.
"""

from __future__ import annotations


class CRMError(Exception):
    status_code = 500
    default_detail = "unexpected_error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(CRMError):
    status_code = 400
    default_detail = "invalid_input"


class Unauthenticated(CRMError):
    status_code = 401
    default_detail = "authentication_required"


class InvalidCredentials(Unauthenticated):
    # Same detail for unknown username and wrong password.
    default_detail = "invalid_credentials"


class Forbidden(CRMError):
    status_code = 403
    default_detail = "forbidden"


class IncorrectCurrentPassword(Forbidden):
    default_detail = "incorrect_current_password"


class NotFound(CRMError):
    status_code = 404
    default_detail = "not_found"


class Conflict(CRMError):
    status_code = 409
    default_detail = "conflict"


class Unexpected(CRMError):
    status_code = 500
    default_detail = "unexpected_error"
