"""Admin project management: CRUD, value revisions and status moves."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission, require_role
from expenseflow.db.session import get_session
from expenseflow.schemas.project import (
    ProjectCreate,
    ProjectDetailOut,
    ProjectListResponse,
    ProjectOut,
    ProjectRevisionOut,
    ProjectUpdate,
    ProjectValueUpdate,
)
from expenseflow.services import project as project_svc

router = APIRouter(dependencies=[Depends(require_role("ADMIN"))])


@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    client_name: str | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
):
    items, total = await project_svc.list_projects(
        db, page, page_size,
        status=status_filter,
        client_name=client_name,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ProjectListResponse(
        items=[ProjectOut.model_validate(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/projects", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("project", "create"))],
):
    project = await project_svc.create_project(
        db,
        admin_id=access.user_id,
        name=body.name,
        client_name=body.client_name,
        value=body.value,
        deadline=body.deadline,
        description=body.description,
    )
    return ProjectOut.model_validate(project)


@router.get("/projects/{project_id}", response_model=ProjectDetailOut)
async def get_project(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "read"))],
):
    detail = await project_svc.get_project_detail(db, project_id)
    return ProjectDetailOut(
        **ProjectOut.model_validate(detail["project"]).model_dump(),
        total_expenses=detail["total_expenses"],
        remaining_budget=detail["remaining_budget"],
    )


@router.patch("/projects/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "update"))],
):
    project = await project_svc.update_project(
        db, project_id, body.model_dump(exclude_unset=True)
    )
    return ProjectOut.model_validate(project)


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "delete"))],
):
    await project_svc.delete_project(db, project_id)


@router.post("/projects/{project_id}/update-value", response_model=ProjectOut)
async def update_project_value(
    project_id: uuid.UUID,
    body: ProjectValueUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("project", "update"))],
):
    project = await project_svc.update_value(
        db, project_id, body.new_value, body.reason, access.user_id
    )
    return ProjectOut.model_validate(project)


@router.get("/projects/{project_id}/revisions", response_model=list[ProjectRevisionOut])
async def list_project_revisions(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("project", "read"))],
):
    revisions = await project_svc.list_revisions(db, project_id)
    return [ProjectRevisionOut.model_validate(r) for r in revisions]


# ─── Status moves ───


@router.post("/projects/{project_id}/complete", response_model=ProjectOut)
async def complete_project(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("project", "update"))],
):
    return ProjectOut.model_validate(
        await project_svc.complete_project(db, project_id, access.user_id)
    )


@router.post("/projects/{project_id}/cancel", response_model=ProjectOut)
async def cancel_project(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("project", "update"))],
):
    return ProjectOut.model_validate(
        await project_svc.cancel_project(db, project_id, access.user_id)
    )


@router.post("/projects/{project_id}/hold", response_model=ProjectOut)
async def hold_project(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("project", "update"))],
):
    return ProjectOut.model_validate(
        await project_svc.hold_project(db, project_id, access.user_id)
    )


@router.post("/projects/{project_id}/reactivate", response_model=ProjectOut)
async def reactivate_project(
    project_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("project", "update"))],
):
    return ProjectOut.model_validate(
        await project_svc.reactivate_project(db, project_id, access.user_id)
    )
