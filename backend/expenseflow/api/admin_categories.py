"""Admin expense category management."""
import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission, require_role
from expenseflow.db.session import get_session
from expenseflow.schemas.category import (
    CategoryCreate,
    CategoryListResponse,
    CategoryOut,
    CategoryUpdate,
)
from expenseflow.schemas.expense import ExpenseListResponse, ExpenseOut
from expenseflow.services import category as category_svc
from expenseflow.services import ledger

router = APIRouter(dependencies=[Depends(require_role("ADMIN"))])


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("category", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
):
    items, total = await category_svc.list_categories(
        db, page, page_size, is_active=is_active, search=search
    )
    return CategoryListResponse(
        items=[CategoryOut.model_validate(c) for c in items],
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
    category = await category_svc.create_category(
        db, body.name, body.description, actor_id=access.user_id
    )
    return CategoryOut.model_validate(category)


@router.get("/categories/active", response_model=list[CategoryOut])
async def list_active_categories(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("category", "read"))],
):
    return [CategoryOut.model_validate(c) for c in await category_svc.list_active(db)]


@router.get("/categories/{category_id}", response_model=CategoryOut)
async def get_category(
    category_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("category", "read"))],
):
    return CategoryOut.model_validate(await category_svc.get_category(db, category_id))


@router.patch("/categories/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("category", "update"))],
):
    category = await category_svc.update_category(
        db, category_id, body.model_dump(exclude_unset=True)
    )
    return CategoryOut.model_validate(category)


@router.delete("/categories/{category_id}", response_model=CategoryOut)
async def deactivate_category(
    category_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("category", "update"))],
):
    """Categories are deactivated, never deleted."""
    return CategoryOut.model_validate(await category_svc.deactivate_category(db, category_id))


@router.post("/categories/{category_id}/activate", response_model=CategoryOut)
async def activate_category(
    category_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("category", "update"))],
):
    return CategoryOut.model_validate(await category_svc.activate_category(db, category_id))


@router.get("/categories/{category_id}/expenses", response_model=ExpenseListResponse)
async def list_category_expenses(
    category_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("expense", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
):
    await category_svc.get_category(db, category_id)
    items, total = await ledger.list_expenses(
        db, page, page_size,
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
    )
    return ExpenseListResponse(
        items=[ExpenseOut.model_validate(e) for e in items],
        total=total,
        page=page,
        page_size=page_size,
    )
