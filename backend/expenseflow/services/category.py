"""Expense category management.

Categories referenced by a ledger row or a direct expense request are never
deleted; they can only be deactivated once nothing uses them.
"""
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.errors import BusinessRuleError, NotFoundError
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.direct_expense import DirectExpenseRequest
from expenseflow.models.expense import Expense
from expenseflow.services.workflow import require_text

logger = logging.getLogger(__name__)


async def get_category(db: AsyncSession, category_id: uuid.UUID) -> ExpenseCategory:
    result = await db.execute(select(ExpenseCategory).where(ExpenseCategory.id == category_id))
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category not found.")
    return category


async def _ensure_unique_name(
    db: AsyncSession, name: str, exclude_id: uuid.UUID | None = None
) -> None:
    stmt = select(ExpenseCategory).where(func.lower(ExpenseCategory.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(ExpenseCategory.id != exclude_id)
    if (await db.execute(stmt)).scalars().first() is not None:
        raise BusinessRuleError(f"Category '{name}' already exists.")


async def usage_count(db: AsyncSession, category_id: uuid.UUID) -> int:
    """Ledger rows plus direct expense requests referencing the category."""
    expenses = (
        await db.execute(
            select(func.count()).select_from(Expense).where(Expense.category_id == category_id)
        )
    ).scalar_one()
    requests = (
        await db.execute(
            select(func.count())
            .select_from(DirectExpenseRequest)
            .where(DirectExpenseRequest.category_id == category_id)
        )
    ).scalar_one()
    return expenses + requests


async def create_category(
    db: AsyncSession,
    name: str,
    description: str | None = None,
    actor_id: uuid.UUID | None = None,
) -> ExpenseCategory:
    name = require_text(name, "Category name")
    await _ensure_unique_name(db, name)

    category = ExpenseCategory(
        name=name,
        description=description,
        is_active=True,
        created_by_id=actor_id,
    )
    db.add(category)
    await db.flush()
    await db.commit()
    logger.info("Category created: id=%s name=%s", category.id, name)
    return category


async def update_category(
    db: AsyncSession,
    category_id: uuid.UUID,
    updates: dict,
) -> ExpenseCategory:
    category = await get_category(db, category_id)

    name = updates.get("name")
    if name is not None:
        name = require_text(name, "Category name")
        if name.lower() != category.name.lower():
            await _ensure_unique_name(db, name, exclude_id=category.id)
        category.name = name
    if updates.get("description") is not None:
        category.description = updates["description"]

    is_active = updates.get("is_active")
    if is_active is False and category.is_active:
        await _check_unused(db, category)
    if is_active is not None:
        category.is_active = is_active

    await db.flush()
    await db.commit()
    return category


async def _check_unused(db: AsyncSession, category: ExpenseCategory) -> None:
    count = await usage_count(db, category.id)
    if count > 0:
        raise BusinessRuleError(
            f"Category '{category.name}' is used by {count} expense(s) and cannot be deactivated."
        )


async def deactivate_category(db: AsyncSession, category_id: uuid.UUID) -> ExpenseCategory:
    category = await get_category(db, category_id)
    await _check_unused(db, category)
    category.is_active = False
    await db.flush()
    await db.commit()
    logger.info("Category deactivated: id=%s", category.id)
    return category


async def activate_category(db: AsyncSession, category_id: uuid.UUID) -> ExpenseCategory:
    category = await get_category(db, category_id)
    category.is_active = True
    await db.flush()
    await db.commit()
    logger.info("Category activated: id=%s", category.id)
    return category


async def list_categories(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    is_active: bool | None = None,
    search: str | None = None,
) -> tuple[list[ExpenseCategory], int]:
    stmt = select(ExpenseCategory)
    if is_active is not None:
        stmt = stmt.where(ExpenseCategory.is_active == is_active)
    if search:
        stmt = stmt.where(ExpenseCategory.name.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    offset = (page - 1) * page_size
    stmt = stmt.order_by(ExpenseCategory.name.asc()).offset(offset).limit(page_size)
    items = list((await db.execute(stmt)).scalars().all())
    return items, total


async def list_active(db: AsyncSession) -> list[ExpenseCategory]:
    stmt = (
        select(ExpenseCategory)
        .where(ExpenseCategory.is_active.is_(True))
        .order_by(ExpenseCategory.name.asc())
    )
    return list((await db.execute(stmt)).scalars().all())
