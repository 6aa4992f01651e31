"""Seed default users and expense categories into the database.

Idempotent: existing rows (matched by email / name) are left untouched.
Run: python -m expenseflow.core.seed
"""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.config import settings
from expenseflow.core.security import hash_password
from expenseflow.db.session import AsyncSessionLocal
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "changeme123"

# (email, name, role)
DEFAULT_USERS = [
    ("admin@example.com", "Admin User", "ADMIN"),
    ("finance@example.com", "Finance User", "FINANCE"),
    ("staff@example.com", "Staff User", "STAFF"),
]

# (name, description)
DEFAULT_CATEGORIES = [
    (settings.REIMBURSEMENT_CATEGORY_NAME, "Default category for staff reimbursements"),
    ("Transportation", "Fuel, tolls, parking and travel fares"),
    ("Materials", "Project materials and supplies"),
    ("Equipment", "Tools and equipment purchases or rentals"),
    ("Meals", "Meals and refreshments"),
    ("Accommodation", "Hotels and lodging"),
    ("Office Supplies", "Stationery and consumables"),
    ("Utilities", "Electricity, water and internet"),
]


async def seed_users(db: AsyncSession) -> None:
    for email, name, role in DEFAULT_USERS:
        existing = await db.execute(select(User).where(User.email == email))
        if existing.scalars().first() is None:
            db.add(User(
                email=email,
                name=name,
                password_hash=hash_password(DEFAULT_PASSWORD),
                role=role,
                is_active=True,
            ))
            logger.info("Seeded user: %s (%s)", email, role)
        else:
            logger.info("User already exists: %s, skipping", email)
    await db.commit()


async def seed_categories(db: AsyncSession) -> None:
    for name, description in DEFAULT_CATEGORIES:
        existing = await db.execute(select(ExpenseCategory).where(ExpenseCategory.name == name))
        if existing.scalars().first() is None:
            db.add(ExpenseCategory(name=name, description=description, is_active=True))
            logger.info("Seeded category: %s", name)
        else:
            logger.info("Category already exists: %s, skipping", name)
    await db.commit()


async def run_seed() -> None:
    async with AsyncSessionLocal() as db:
        await seed_users(db)
        await seed_categories(db)
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_seed())
