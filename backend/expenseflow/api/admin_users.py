"""Admin user management endpoints."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core import rbac
from expenseflow.core.deps import require_permission, require_role
from expenseflow.core.errors import BusinessRuleError, NotFoundError
from expenseflow.core.security import hash_password
from expenseflow.db.session import get_session
from expenseflow.models.user import User
from expenseflow.schemas.admin_user import (
    AdminUserCreate,
    AdminUserListResponse,
    AdminUserOut,
    AdminUserUpdate,
)
from expenseflow.services import audit as audit_svc
from expenseflow.services.workflow import utcnow

router = APIRouter(dependencies=[Depends(require_role("ADMIN"))])


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found.")
    return user


async def _ensure_email_free(db: AsyncSession, email: str) -> None:
    result = await db.execute(
        select(User).where(func.lower(User.email) == email.lower(), User.deleted_at.is_(None))
    )
    if result.scalar_one_or_none():
        raise BusinessRuleError("Email already exists.")


# ─── GET /admin/users ───


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("user", "read"))],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    role: str | None = Query(default=None),
    search: str | None = Query(default=None),
):
    """Return paginated list of users."""
    stmt = select(User).where(User.deleted_at.is_(None))
    if role:
        stmt = stmt.where(User.role == role)
    if search:
        stmt = stmt.where(User.name.ilike(f"%{search}%") | User.email.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    offset = (page - 1) * page_size
    stmt = stmt.order_by(User.created_at.desc()).offset(offset).limit(page_size)
    users = (await db.execute(stmt)).scalars().all()

    return AdminUserListResponse(
        items=[AdminUserOut.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size,
    )


# ─── POST /admin/users ───


@router.post("/users", response_model=AdminUserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: AdminUserCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("user", "create"))],
):
    await _ensure_email_free(db, body.email)

    user = User(
        email=body.email,
        name=body.name,
        password_hash=hash_password(body.password),
        role=body.role,
        phone=body.phone,
        bank_name=body.bank_name,
        bank_account_no=body.bank_account_no,
        bank_account_name=body.bank_account_name,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await audit_svc.log(
        db,
        action="user_created",
        entity_type="user",
        entity_id=user.id,
        actor_id=access.user_id,
        after={"email": user.email, "role": user.role},
    )
    await db.commit()
    await db.refresh(user)
    return AdminUserOut.model_validate(user)


# ─── /admin/users/{id} ───


@router.get("/users/{user_id}", response_model=AdminUserOut)
async def get_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    _access: Annotated[rbac.Access, Depends(require_permission("user", "read"))],
):
    return AdminUserOut.model_validate(await _get_user(db, user_id))


@router.put("/users/{user_id}", response_model=AdminUserOut)
async def update_user(
    user_id: uuid.UUID,
    body: AdminUserUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("user", "update"))],
):
    user = await _get_user(db, user_id)
    data = body.model_dump(exclude_unset=True)

    email = data.pop("email", None)
    if email is not None and email.lower() != user.email.lower():
        await _ensure_email_free(db, email)
        user.email = email
    password = data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    if data.get("is_active") is False and user.id == access.user_id:
        raise BusinessRuleError("You cannot deactivate your own account.")
    for field, value in data.items():
        if value is not None:
            setattr(user, field, value)

    await db.flush()
    await audit_svc.log(
        db,
        action="user_updated",
        entity_type="user",
        entity_id=user.id,
        actor_id=access.user_id,
        after={"email": user.email, "role": user.role, "is_active": user.is_active},
    )
    await db.commit()
    await db.refresh(user)
    return AdminUserOut.model_validate(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("user", "delete"))],
):
    """Soft delete; workflow history keeps pointing at the row."""
    user = await _get_user(db, user_id)
    if user.id == access.user_id:
        raise BusinessRuleError("You cannot delete your own account.")
    user.deleted_at = utcnow()
    user.is_active = False
    await db.flush()
    await audit_svc.log(
        db,
        action="user_deleted",
        entity_type="user",
        entity_id=user.id,
        actor_id=access.user_id,
        before={"email": user.email, "role": user.role},
    )
    await db.commit()


@router.post("/users/{user_id}/toggle-status", response_model=AdminUserOut)
async def toggle_user_status(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    access: Annotated[rbac.Access, Depends(require_permission("user", "update"))],
):
    user = await _get_user(db, user_id)
    if user.id == access.user_id:
        raise BusinessRuleError("You cannot deactivate your own account.")
    user.is_active = not user.is_active
    await db.flush()
    await audit_svc.log(
        db,
        action="user_status_toggled",
        entity_type="user",
        entity_id=user.id,
        actor_id=access.user_id,
        after={"is_active": user.is_active},
    )
    await db.commit()
    await db.refresh(user)
    return AdminUserOut.model_validate(user)
