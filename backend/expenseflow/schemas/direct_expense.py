import uuid
from datetime import datetime
from decimal import Decimal

from expenseflow.schemas.common import CamelModel


class DirectExpenseCreate(CamelModel):
    project_id: uuid.UUID | None = None
    category_id: uuid.UUID
    amount: Decimal
    description: str
    expense_date: datetime
    invoice_url: str


class DirectExpensePayIn(CamelModel):
    payment_proof_url: str
    payment_notes: str | None = None
    payment_date: datetime | None = None


class DirectExpenseOut(CamelModel):
    id: uuid.UUID
    created_by_id: uuid.UUID
    project_id: uuid.UUID | None
    category_id: uuid.UUID
    amount: Decimal
    description: str
    expense_date: datetime
    invoice_url: str
    status: str
    approved_by_id: uuid.UUID | None
    approved_at: datetime | None
    approval_notes: str | None
    rejected_by_id: uuid.UUID | None
    rejected_at: datetime | None
    rejection_reason: str | None
    paid_by_id: uuid.UUID | None
    paid_at: datetime | None
    payment_date: datetime | None
    payment_proof_url: str | None
    payment_notes: str | None
    created_at: datetime


class DirectExpensePaidOut(DirectExpenseOut):
    expense_id: uuid.UUID


class DirectExpenseListResponse(CamelModel):
    items: list[DirectExpenseOut]
    total: int
    page: int
    page_size: int


class DirectExpenseStatistics(CamelModel):
    pending: int = 0
    approved: int = 0
    paid: int = 0
    rejected: int = 0
    total: int = 0
    total_amount: Decimal = Decimal("0")
