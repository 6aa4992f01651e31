import uuid
from datetime import datetime

from pydantic import Field

from expenseflow.schemas.common import CamelModel


class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class CategoryUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    is_active: bool | None = None


class CategoryOut(CamelModel):
    id: uuid.UUID
    name: str
    description: str | None
    is_active: bool
    created_at: datetime


class CategoryListResponse(CamelModel):
    items: list[CategoryOut]
    total: int
    page: int
    page_size: int
