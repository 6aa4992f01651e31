"""Pydantic schemas for admin user management and self-service settings."""
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, Field

from expenseflow.schemas.common import CamelModel

RoleName = Literal["ADMIN", "FINANCE", "STAFF"]


class AdminUserCreate(CamelModel):
    """Create a new user (admin only)."""
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8)
    role: RoleName
    phone: str | None = None
    bank_name: str | None = None
    bank_account_no: str | None = None
    bank_account_name: str | None = None


class AdminUserUpdate(CamelModel):
    """Update user fields (admin only)."""
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    role: RoleName | None = None
    password: str | None = Field(default=None, min_length=8)
    phone: str | None = None
    bank_name: str | None = None
    bank_account_no: str | None = None
    bank_account_name: str | None = None
    is_active: bool | None = None


class AdminUserOut(CamelModel):
    """User response for admin endpoints."""
    id: uuid.UUID
    email: str
    name: str
    role: str
    phone: str | None
    bank_name: str | None
    bank_account_no: str | None
    bank_account_name: str | None
    is_active: bool
    created_at: datetime


class AdminUserListResponse(CamelModel):
    """Paginated list of users."""
    items: list[AdminUserOut]
    total: int
    page: int
    page_size: int


class ProfileUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = None
    bank_name: str | None = None
    bank_account_no: str | None = None
    bank_account_name: str | None = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(min_length=8)
