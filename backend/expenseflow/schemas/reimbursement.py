import uuid
from datetime import datetime
from decimal import Decimal

from expenseflow.schemas.common import CamelModel


class ReimbursementCreate(CamelModel):
    project_id: uuid.UUID
    amount: Decimal
    description: str
    expense_date: datetime
    receipt_url: str


class ReviewIn(CamelModel):
    review_notes: str | None = None


class ApproveIn(CamelModel):
    approval_notes: str | None = None


class RejectIn(CamelModel):
    rejection_reason: str


class PayIn(CamelModel):
    payment_proof_url: str
    payment_notes: str | None = None


class ReimbursementOut(CamelModel):
    id: uuid.UUID
    submitted_by_id: uuid.UUID
    project_id: uuid.UUID
    amount: Decimal
    description: str
    expense_date: datetime
    receipt_url: str
    status: str
    submitted_at: datetime
    reviewed_by_id: uuid.UUID | None
    reviewed_at: datetime | None
    review_notes: str | None
    approved_by_id: uuid.UUID | None
    approved_at: datetime | None
    approval_notes: str | None
    paid_by_id: uuid.UUID | None
    paid_at: datetime | None
    payment_proof_url: str | None
    payment_notes: str | None
    rejected_by_id: uuid.UUID | None
    rejected_at: datetime | None
    rejection_reason: str | None
    created_at: datetime


class ReimbursementPaidOut(ReimbursementOut):
    expense_id: uuid.UUID


class ReimbursementListResponse(CamelModel):
    items: list[ReimbursementOut]
    total: int
    page: int
    page_size: int


class ReimbursementStatistics(CamelModel):
    pending: int = 0
    reviewed: int = 0
    approved: int = 0
    paid: int = 0
    rejected: int = 0
    total: int = 0
    total_amount: Decimal = Decimal("0")
