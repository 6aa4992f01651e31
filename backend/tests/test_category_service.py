"""Tests for expense category management."""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import MultipleResultsFound

import expenseflow.models  # noqa: F401
from expenseflow.core.errors import BusinessRuleError, ValidationError
from expenseflow.models.category import ExpenseCategory
from expenseflow.services import category as category_svc


def _result(obj=None, count=0):
    result = MagicMock()
    result.scalar_one_or_none.return_value = obj
    result.scalars.return_value.first.return_value = obj
    result.scalar_one.return_value = count
    return result


def _db(*results):
    db = AsyncMock()
    db.add = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    return db


def make_category(name: str = "Transportation", is_active: bool = True) -> ExpenseCategory:
    return ExpenseCategory(id=uuid.uuid4(), name=name, is_active=is_active)


@pytest.mark.asyncio
async def test_create_category():
    db = _db(_result(None))
    category = await category_svc.create_category(db, "  Fuel  ", "Fuel and tolls")

    assert category.name == "Fuel"
    assert category.is_active is True
    db.add.assert_called_once_with(category)
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_duplicate_name_is_business_rule_error():
    db = _db(_result(make_category("Fuel")))
    with pytest.raises(BusinessRuleError):
        await category_svc.create_category(db, "fuel")
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_blank_name_is_validation_error():
    db = _db()
    with pytest.raises(ValidationError):
        await category_svc.create_category(db, "   ")
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_usage_count_sums_ledger_and_requests():
    category = make_category()
    db = _db(_result(count=3), _result(count=2))
    assert await category_svc.usage_count(db, category.id) == 5


@pytest.mark.asyncio
async def test_deactivate_in_use_category_fails():
    category = make_category()
    db = _db(_result(category), _result(count=1), _result(count=0))

    with pytest.raises(BusinessRuleError):
        await category_svc.deactivate_category(db, category.id)

    assert category.is_active is True
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_deactivate_unused_category():
    category = make_category()
    db = _db(_result(category), _result(count=0), _result(count=0))

    await category_svc.deactivate_category(db, category.id)

    assert category.is_active is False
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_with_inactive_flag_runs_usage_check():
    category = make_category()
    db = _db(_result(category), _result(count=0), _result(count=4))

    with pytest.raises(BusinessRuleError):
        await category_svc.update_category(db, category.id, {"is_active": False})
    assert category.is_active is True


@pytest.mark.asyncio
async def test_rename_to_existing_name_fails():
    category = make_category("Fuel")
    db = _db(_result(category), _result(make_category("Meals")))

    with pytest.raises(BusinessRuleError):
        await category_svc.update_category(db, category.id, {"name": "Meals"})
    assert category.name == "Fuel"


@pytest.mark.asyncio
async def test_duplicate_check_tolerates_several_case_variants():
    duplicates = _result()
    duplicates.scalar_one_or_none.side_effect = MultipleResultsFound()
    duplicates.scalars.return_value.first.return_value = make_category("Reimbursement")
    db = _db(duplicates)

    with pytest.raises(BusinessRuleError):
        await category_svc.create_category(db, "REIMBURSEMENT")
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_activate_category():
    category = make_category(is_active=False)
    db = _db(_result(category))

    await category_svc.activate_category(db, category.id)
    assert category.is_active is True
