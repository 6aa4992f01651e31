"""Self-service profile and password endpoints for any signed-in user."""
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.deps import get_current_user
from expenseflow.core.errors import ValidationError
from expenseflow.core.security import hash_password, verify_password
from expenseflow.db.session import get_session
from expenseflow.models.user import User
from expenseflow.schemas.admin_user import PasswordChange, ProfileUpdate
from expenseflow.schemas.auth import UserOut
from expenseflow.services import audit as audit_svc

router = APIRouter()


@router.get("/profile", response_model=UserOut)
async def get_profile(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user


@router.patch("/profile", response_model=UserOut)
async def update_profile(
    body: ProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, field, value)
    await db.commit()
    return current_user


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    body: PasswordChange,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    if not verify_password(body.current_password, current_user.password_hash):
        raise ValidationError("Current password is incorrect.")
    if body.current_password == body.new_password:
        raise ValidationError("New password must differ from the current password.")
    current_user.password_hash = hash_password(body.new_password)
    await audit_svc.log(
        db,
        action="password_changed",
        entity_type="user",
        entity_id=current_user.id,
        actor_id=current_user.id,
        actor_email=current_user.email,
    )
    await db.commit()
