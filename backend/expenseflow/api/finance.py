"""Finance endpoints: review and pay reimbursements, raise and pay direct expenses."""
import uuid
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission, require_role
from expenseflow.db.session import get_session
from expenseflow.schemas.category import CategoryCreate, CategoryOut
from expenseflow.schemas.direct_expense import (
    DirectExpenseCreate,
    DirectExpenseListResponse,
    DirectExpenseOut,
    DirectExpensePaidOut,
    DirectExpensePayIn,
    DirectExpenseStatistics,
)
from expenseflow.schemas.project import ProjectListResponse, ProjectOut
from expenseflow.schemas.reimbursement import (
    PayIn,
    RejectIn,
    ReimbursementListResponse,
    ReimbursementOut,
    ReimbursementPaidOut,
    ReimbursementStatistics,
    ReviewIn,
)
from expenseflow.services import category as category_svc
from expenseflow.services import direct_expense as direct_expense_svc
from expenseflow.services import project as project_svc
from expenseflow.services import reimbursement as reimbursement_svc

router = APIRouter(dependencies=[Depends(require_role("FINANCE"))])


# ─── Reimbursements ───


@router.get("/reimbursements", response_model=ReimbursementListResponse)
async def list_reimbursements(
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
    view: Literal["to-review", "to-pay"] | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    project_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None),
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
):
    """``view=to-review`` lists PENDING items; ``view=to-pay`` lists APPROVED items this user reviewed."""
    if view == "to-review":
        items, total = await reimbursement_svc.list_pending_to_review(db, page, page_size)
    elif view == "to-pay":
        items, total = await reimbursement_svc.list_approved_to_pay(
            db, access.user_id, page, page_size
        )
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


@router.post("/reimbursements/{reimbursement_id}/review", response_model=ReimbursementOut)
async def review_reimbursement(
    reimbursement_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "review"))],
    body: ReviewIn | None = None,
):
    reimbursement = await reimbursement_svc.review(
        db, reimbursement_id, access.user_id, notes=body.review_notes if body else None
    )
    return ReimbursementOut.model_validate(reimbursement)


@router.post("/reimbursements/{reimbursement_id}/reject", response_model=ReimbursementOut)
async def reject_reimbursement(
    reimbursement_id: uuid.UUID,
    body: RejectIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "reject"))],
):
    reimbursement = await reimbursement_svc.reject_by_finance(
        db, reimbursement_id, access.user_id, body.rejection_reason
    )
    return ReimbursementOut.model_validate(reimbursement)


@router.post("/reimbursements/{reimbursement_id}/pay", response_model=ReimbursementPaidOut)
async def pay_reimbursement(
    reimbursement_id: uuid.UUID,
    body: PayIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "pay"))],
):
    reimbursement, expense = await reimbursement_svc.mark_as_paid(
        db,
        reimbursement_id,
        access.user_id,
        payment_proof_url=body.payment_proof_url,
        payment_notes=body.payment_notes,
    )
    return ReimbursementPaidOut(
        **ReimbursementOut.model_validate(reimbursement).model_dump(),
        expense_id=expense.id,
    )


# ─── Direct expenses ───


@router.get("/direct-expenses", response_model=DirectExpenseListResponse)
async def list_direct_expenses(
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "read"))],
    view: Literal["mine", "to-pay"] | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    project_id: uuid.UUID | None = Query(default=None),
    category_id: uuid.UUID | None = Query(default=None),
):
    """``view=mine`` lists requests this user raised; ``view=to-pay`` lists every APPROVED request."""
    if view == "to-pay":
        items, total = await direct_expense_svc.list_approved_to_pay(db, page, page_size)
    else:
        items, total = await direct_expense_svc.list_direct_expenses(
            db, page, page_size,
            status=status_filter,
            project_id=project_id,
            category_id=category_id,
            created_by_id=access.user_id if view == "mine" else None,
        )
    return DirectExpenseListResponse(
        items=[DirectExpenseOut.model_validate(d) for d in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/direct-expenses",
    response_model=DirectExpenseOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_direct_expense(
    body: DirectExpenseCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "create"))],
):
    request = await direct_expense_svc.create(
        db,
        finance_id=access.user_id,
        category_id=body.category_id,
        amount=body.amount,
        description=body.description,
        expense_date=body.expense_date,
        invoice_url=body.invoice_url,
        project_id=body.project_id,
    )
    return DirectExpenseOut.model_validate(request)


@router.get("/direct-expenses/statistics", response_model=DirectExpenseStatistics)
async def direct_expense_statistics(
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "read"))],
):
    return await direct_expense_svc.get_statistics(db, created_by_id=access.user_id)


@router.get("/direct-expenses/{request_id}", response_model=DirectExpenseOut)
async def get_direct_expense(
    request_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "read"))],
):
    return DirectExpenseOut.model_validate(
        await direct_expense_svc.get_direct_expense(db, request_id)
    )


@router.post("/direct-expenses/{request_id}/pay", response_model=DirectExpensePaidOut)
async def pay_direct_expense(
    request_id: uuid.UUID,
    body: DirectExpensePayIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("direct_expense", "pay"))],
):
    request, expense = await direct_expense_svc.mark_as_paid(
        db,
        request_id,
        access.user_id,
        payment_proof_url=body.payment_proof_url,
        payment_notes=body.payment_notes,
        payment_date=body.payment_date,
    )
    return DirectExpensePaidOut(
        **DirectExpenseOut.model_validate(request).model_dump(),
        expense_id=expense.id,
    )


# ─── Lookups ───


@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
):
    items, total = await project_svc.list_projects(
        db, page, page_size, status=status_filter, search=search, sort_by="name", sort_order="asc"
    )
    return ProjectListResponse(
        items=[ProjectOut.model_validate(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("category", "create"))],
):
    """Create a category while raising a direct expense."""
    category = await category_svc.create_category(
        db, body.name, body.description, actor_id=access.user_id
    )
    return CategoryOut.model_validate(category)
