"""Request bodies.

Every model rejects unknown fields; update models list exactly the mutable
fields of their table. camelCase aliases are accepted for the fields the web
client historically sent that way (clientId, reminderDateTime, ...).
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from salesflow_crm import errors

Priority = Literal["none", "1 month", "2 months", "3 months"]
QuotationStatus = Literal["draft", "sent", "accepted", "rejected"]
ReminderType = Literal["email", "whatsapp", "meeting", "follow-up"]


def _check_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        validate_email(v.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(f"invalid email address: {e}")
    return v.strip()


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class UpdateModel(StrictModel):
    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent. Explicit nulls are not allowed."""
        data = self.model_dump(exclude_unset=True)
        nulls = sorted(k for k, v in data.items() if v is None)
        if nulls:
            raise errors.ValidationError(f"null_fields: {', '.join(nulls)}")
        return data


# -----------------------------
# Auth / users
# -----------------------------


class LoginRequest(StrictModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(StrictModel):
    username: str = Field(min_length=3, max_length=64)
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def valid_email(cls, v):
        return _check_email(v)


class ProfileUpdate(StrictModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=64)
    email: Optional[str] = None
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")

    @field_validator("email")
    @classmethod
    def valid_email(cls, v):
        return _check_email(v)

    @model_validator(mode="after")
    def current_password_required(self):
        if self.new_password and not self.current_password:
            raise ValueError("Current password is required to set a new password.")
        return self


class AdminUserUpdate(UpdateModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=64)
    email: Optional[str] = None
    role: Optional[Literal["admin", "user"]] = None

    @field_validator("email")
    @classmethod
    def valid_email(cls, v):
        return _check_email(v)


# -----------------------------
# Clients
# -----------------------------


class ClientCreate(StrictModel):
    name: str = Field(min_length=2)
    email: str
    phone: str = Field(min_length=10)
    requirements: str = Field(min_length=5)
    priority: Priority = "none"

    @field_validator("email")
    @classmethod
    def valid_email(cls, v):
        return _check_email(v)


class ClientUpdate(UpdateModel):
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, min_length=10)
    requirements: Optional[str] = Field(default=None, min_length=5)
    priority: Optional[Priority] = None

    @field_validator("email")
    @classmethod
    def valid_email(cls, v):
        return _check_email(v)


# -----------------------------
# Quotations
# -----------------------------


class QuotationCreate(StrictModel):
    client_id: int = Field(alias="clientId")
    details: str = Field(min_length=10)
    amount: float = Field(gt=0, allow_inf_nan=False)
    status: QuotationStatus = "draft"


class QuotationUpdate(UpdateModel):
    client_id: Optional[int] = Field(default=None, alias="clientId")
    details: Optional[str] = Field(default=None, min_length=10)
    amount: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    status: Optional[QuotationStatus] = None


# -----------------------------
# Reminders
# -----------------------------


class ReminderCreate(StrictModel):
    client_id: int = Field(alias="clientId")
    message: str = Field(min_length=5)
    reminder_at: datetime = Field(alias="reminderDateTime")
    type: ReminderType


class ReminderUpdate(UpdateModel):
    client_id: Optional[int] = Field(default=None, alias="clientId")
    message: Optional[str] = Field(default=None, min_length=5)
    reminder_at: Optional[datetime] = Field(default=None, alias="reminderDateTime")
    type: Optional[ReminderType] = None
    completed: Optional[bool] = None


class ReminderToggle(StrictModel):
    completed: bool
