"""Expense ledger: the immutable record counted by all financial reporting.

One row is written per paid Reimbursement or DirectExpenseRequest, inside
the same transaction as the status change that pays it. Rows are never
updated or deleted.
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.errors import NotFoundError
from expenseflow.models.expense import Expense, ExpenseSourceType

logger = logging.getLogger(__name__)


async def record_expense(
    db: AsyncSession,
    source_type: ExpenseSourceType,
    source,
    category_id: uuid.UUID,
    receipt_url: str | None,
    payment_proof_url: str | None,
    recorded_by_id: uuid.UUID,
) -> Expense:
    """Add the ledger snapshot of a paid source record. Does not commit."""
    expense = Expense(
        project_id=source.project_id,
        category_id=category_id,
        source_type=source_type.value,
        source_id=source.id,
        description=source.description,
        amount=source.amount,
        expense_date=source.expense_date,
        receipt_url=receipt_url,
        payment_proof_url=payment_proof_url,
        recorded_by_id=recorded_by_id,
    )
    db.add(expense)
    await db.flush()
    logger.info(
        "Ledger: recorded %s %s amount=%s",
        source_type.value, source.id, source.amount,
    )
    return expense


async def get_expense(db: AsyncSession, expense_id: uuid.UUID) -> Expense:
    result = await db.execute(select(Expense).where(Expense.id == expense_id))
    expense = result.scalar_one_or_none()
    if expense is None:
        raise NotFoundError("Expense not found.")
    return expense


async def list_expenses(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    project_id: uuid.UUID | None = None,
    category_id: uuid.UUID | None = None,
    source_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
) -> tuple[list[Expense], int]:
    stmt = select(Expense)
    if project_id:
        stmt = stmt.where(Expense.project_id == project_id)
    if category_id:
        stmt = stmt.where(Expense.category_id == category_id)
    if source_type:
        stmt = stmt.where(Expense.source_type == source_type)
    if start_date:
        stmt = stmt.where(Expense.expense_date >= start_date)
    if end_date:
        stmt = stmt.where(Expense.expense_date <= end_date)
    if search:
        stmt = stmt.where(Expense.description.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    offset = (page - 1) * page_size
    stmt = stmt.order_by(Expense.expense_date.desc()).offset(offset).limit(page_size)
    items = list((await db.execute(stmt)).scalars().all())
    return items, total
