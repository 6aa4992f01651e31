"""Staff endpoints: submit and track own reimbursements."""
import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission, require_role
from expenseflow.db.session import get_session
from expenseflow.models.project import ProjectStatus
from expenseflow.schemas.project import ProjectListResponse, ProjectOut
from expenseflow.schemas.reimbursement import (
    ReimbursementCreate,
    ReimbursementListResponse,
    ReimbursementOut,
    ReimbursementStatistics,
)
from expenseflow.services import project as project_svc
from expenseflow.services import reimbursement as reimbursement_svc

router = APIRouter(dependencies=[Depends(require_role("STAFF"))])


@router.get("/reimbursements", response_model=ReimbursementListResponse)
async def list_my_reimbursements(
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    project_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None),
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
    sort_by: str = Query(default="submitted_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
):
    items, total = await reimbursement_svc.list_reimbursements(
        db, page, page_size,
        status=status_filter,
        submitted_by_id=access.user_id,
        project_id=project_id,
        search=search,
        from_date=from_date,
        to_date=to_date,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ReimbursementListResponse(
        items=[ReimbursementOut.model_validate(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/reimbursements",
    response_model=ReimbursementOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_reimbursement(
    body: ReimbursementCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "create"))],
):
    reimbursement = await reimbursement_svc.submit(
        db,
        staff_id=access.user_id,
        project_id=body.project_id,
        amount=body.amount,
        description=body.description,
        expense_date=body.expense_date,
        receipt_url=body.receipt_url,
    )
    return ReimbursementOut.model_validate(reimbursement)


@router.get("/reimbursements/statistics", response_model=ReimbursementStatistics)
async def my_statistics(
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
):
    return await reimbursement_svc.get_statistics(db, submitted_by_id=access.user_id)


@router.get("/reimbursements/{reimbursement_id}", response_model=ReimbursementOut)
async def get_my_reimbursement(
    reimbursement_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("reimbursement", "read"))],
):
    reimbursement = await reimbursement_svc.get_reimbursement(db, reimbursement_id)
    rbac.ensure_owner(access.scope, reimbursement.submitted_by_id, access.user_id)
    return ReimbursementOut.model_validate(reimbursement)


@router.get("/projects", response_model=ProjectListResponse)
async def list_open_projects(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=100),
    search: str | None = Query(default=None),
):
    """Projects a reimbursement can currently be submitted against."""
    items, total = await project_svc.list_projects(
        db, page, page_size,
        status=ProjectStatus.ACTIVE.value,
        search=search,
        sort_by="name",
        sort_order="asc",
    )
    return ProjectListResponse(
        items=[ProjectOut.model_validate(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )
