import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import Field

from expenseflow.schemas.common import CamelModel


class ProjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    client_name: str = Field(min_length=1, max_length=255)
    value: Decimal
    deadline: datetime
    description: str | None = None


class ProjectUpdate(CamelModel):
    """Descriptive edits. ``value`` is accepted only when unchanged."""
    name: str | None = Field(default=None, min_length=1, max_length=255)
    client_name: str | None = Field(default=None, min_length=1, max_length=255)
    value: Decimal | None = None
    deadline: datetime | None = None
    description: str | None = None


class ProjectValueUpdate(CamelModel):
    new_value: Decimal
    reason: str


class ProjectOut(CamelModel):
    id: uuid.UUID
    name: str
    client_name: str
    value: Decimal
    deadline: datetime
    status: str
    description: str | None
    created_by_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class ProjectDetailOut(ProjectOut):
    total_expenses: Decimal
    remaining_budget: Decimal


class ProjectListResponse(CamelModel):
    items: list[ProjectOut]
    total: int
    page: int
    page_size: int


class ProjectRevisionOut(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    old_value: Decimal
    new_value: Decimal
    reason: str
    changed_by_id: uuid.UUID
    changed_at: datetime
