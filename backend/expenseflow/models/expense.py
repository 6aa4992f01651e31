import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from expenseflow.db.base import Base, Money, UUIDMixin


class ExpenseSourceType(str, enum.Enum):
    REIMBURSEMENT = "REIMBURSEMENT"
    DIRECT_EXPENSE = "DIRECT_EXPENSE"


class Expense(Base, UUIDMixin):
    """Final ledger row, written once when a request is paid. Never updated."""

    __tablename__ = "expenses"
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_expenses_source"),
    )

    project_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), nullable=True, index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("expense_categories.id"), nullable=False, index=True
    )
    source_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    source_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    expense_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    receipt_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    payment_proof_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    recorded_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )
