"""Read-only access to the expense ledger."""
import uuid
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission
from expenseflow.db.session import get_session
from expenseflow.schemas.expense import ExpenseListResponse, ExpenseOut
from expenseflow.services import ledger

router = APIRouter()


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("expense", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    project_id: uuid.UUID | None = Query(default=None),
    category_id: uuid.UUID | None = Query(default=None),
    source_type: Literal["REIMBURSEMENT", "DIRECT_EXPENSE"] | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    search: str | None = Query(default=None),
):
    items, total = await ledger.list_expenses(
        db, page, page_size,
        project_id=project_id,
        category_id=category_id,
        source_type=source_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return ExpenseListResponse(
        items=[ExpenseOut.model_validate(e) for e in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{expense_id}", response_model=ExpenseOut)
async def get_expense(
    expense_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("expense", "read"))],
):
    return ExpenseOut.model_validate(await ledger.get_expense(db, expense_id))
