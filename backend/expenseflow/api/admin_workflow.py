"""Admin decisions on reimbursements and direct expense requests."""
import uuid
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission, require_role
from expenseflow.db.session import get_session
from expenseflow.schemas.direct_expense import (
    DirectExpenseListResponse,
    DirectExpenseOut,
    DirectExpenseStatistics,
)
from expenseflow.schemas.reimbursement import (
    ApproveIn,
    RejectIn,
    ReimbursementListResponse,
    ReimbursementOut,
    ReimbursementStatistics,
)
from expenseflow.services import direct_expense as direct_expense_svc
from expenseflow.services import reimbursement as reimbursement_svc

router = APIRouter(dependencies=[Depends(require_role("ADMIN"))])


# ─── Reimbursements ───


@router.get("/reimbursements", response_model=ReimbursementListResponse)
async def list_reimbursements(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
    view: Literal["to-approve"] | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    project_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None),
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
):
    if view == "to-approve":
        items, total = await reimbursement_svc.list_reviewed_to_approve(db, page, page_size)
    else:
        items, total = await reimbursement_svc.list_reimbursements(
            db, page, page_size,
            status=status_filter,
            project_id=project_id,
            search=search,
            from_date=from_date,
            to_date=to_date,
        )
    return ReimbursementListResponse(
        items=[ReimbursementOut.model_validate(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/reimbursements/statistics", response_model=ReimbursementStatistics)
async def reimbursement_statistics(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
):
    return await reimbursement_svc.get_statistics(db)


@router.get("/reimbursements/{reimbursement_id}", response_model=ReimbursementOut)
async def get_reimbursement(
    reimbursement_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
):
    return ReimbursementOut.model_validate(
        await reimbursement_svc.get_reimbursement(db, reimbursement_id)
    )


@router.post("/reimbursements/{reimbursement_id}/approve", response_model=ReimbursementOut)
async def approve_reimbursement(
    reimbursement_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "approve"))],
    body: ApproveIn | None = None,
):
    reimbursement = await reimbursement_svc.approve(
        db, reimbursement_id, access.user_id, notes=body.approval_notes if body else None
    )
    return ReimbursementOut.model_validate(reimbursement)


@router.post("/reimbursements/{reimbursement_id}/reject", response_model=ReimbursementOut)
async def reject_reimbursement(
    reimbursement_id: uuid.UUID,
    body: RejectIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "reject"))],
):
    reimbursement = await reimbursement_svc.reject_by_admin(
        db, reimbursement_id, access.user_id, body.rejection_reason
    )
    return ReimbursementOut.model_validate(reimbursement)


# ─── Direct expenses ───


@router.get("/direct-expenses", response_model=DirectExpenseListResponse)
async def list_direct_expenses(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    view: Literal["to-approve"] | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    project_id: uuid.UUID | None = Query(default=None),
    category_id: uuid.UUID | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
):
    if view == "to-approve":
        items, total = await direct_expense_svc.list_pending(db, page, page_size)
    else:
        items, total = await direct_expense_svc.list_direct_expenses(
            db, page, page_size,
            status=status_filter,
            project_id=project_id,
            category_id=category_id,
            start_date=start_date,
            end_date=end_date,
        )
    return DirectExpenseListResponse(
        items=[DirectExpenseOut.model_validate(d) for d in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/direct-expenses/statistics", response_model=DirectExpenseStatistics)
async def direct_expense_statistics(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "read"))],
):
    return await direct_expense_svc.get_statistics(db)


@router.get("/direct-expenses/{request_id}", response_model=DirectExpenseOut)
async def get_direct_expense(
    request_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "read"))],
):
    return DirectExpenseOut.model_validate(
        await direct_expense_svc.get_direct_expense(db, request_id)
    )


@router.post("/direct-expenses/{request_id}/approve", response_model=DirectExpenseOut)
async def approve_direct_expense(
    request_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "approve"))],
    body: ApproveIn | None = None,
):
    request = await direct_expense_svc.approve(
        db, request_id, access.user_id, notes=body.approval_notes if body else None
    )
    return DirectExpenseOut.model_validate(request)


@router.post("/direct-expenses/{request_id}/reject", response_model=DirectExpenseOut)
async def reject_direct_expense(
    request_id: uuid.UUID,
    body: RejectIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "reject"))],
):
    request = await direct_expense_svc.reject(
        db, request_id, body.rejection_reason, admin_id=access.user_id
    )
    return DirectExpenseOut.model_validate(request)
