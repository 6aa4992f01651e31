import uuid
from datetime import datetime
from decimal import Decimal

from expenseflow.schemas.common import CamelModel


class ExpenseOut(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID | None
    category_id: uuid.UUID
    source_type: str
    source_id: uuid.UUID
    description: str
    amount: Decimal
    expense_date: datetime
    receipt_url: str | None
    payment_proof_url: str | None
    recorded_by_id: uuid.UUID
    recorded_at: datetime


class ExpenseListResponse(CamelModel):
    items: list[ExpenseOut]
    total: int
    page: int
    page_size: int


class UploadOut(CamelModel):
    url: str
