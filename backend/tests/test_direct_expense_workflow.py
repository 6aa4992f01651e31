"""Tests for the direct expense request lifecycle service."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import expenseflow.models  # noqa: F401
from expenseflow.core.errors import InvalidStateError, NotFoundError, ValidationError
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.direct_expense import DirectExpenseRequest
from expenseflow.models.expense import Expense
from expenseflow.services import direct_expense as direct_expense_svc
from expenseflow.services import ledger

FINANCE_A = uuid.uuid4()
FINANCE_B = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
CATEGORY_ID = uuid.uuid4()
NOW = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def _result(obj=None):
    result = MagicMock()
    result.scalar_one_or_none.return_value = obj
    return result


def _db(*results):
    db = AsyncMock()
    db.add = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    return db


def _added(db, model):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], model)]


def make_request(status: str = "PENDING", **overrides) -> DirectExpenseRequest:
    fields = dict(
        id=uuid.uuid4(),
        created_by_id=FINANCE_A,
        project_id=None,
        category_id=CATEGORY_ID,
        amount=Decimal("4200000.00"),
        description="Office internet, October",
        expense_date=NOW,
        invoice_url="http://x/invoice.pdf",
        status=status,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return DirectExpenseRequest(**fields)


# ─── Create ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_general_expense_without_project():
    category = ExpenseCategory(id=CATEGORY_ID, name="Utilities", is_active=True)
    db = _db(_result(category))

    request = await direct_expense_svc.create(
        db, FINANCE_A, CATEGORY_ID, "4200000", "Office internet", NOW, "http://x/invoice.pdf"
    )

    assert request.status == "PENDING"
    assert request.project_id is None
    assert request.created_by_id == FINANCE_A
    assert db.execute.await_count == 1
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_with_inactive_category_fails():
    category = ExpenseCategory(id=CATEGORY_ID, name="Utilities", is_active=False)
    db = _db(_result(category))

    with pytest.raises(ValidationError):
        await direct_expense_svc.create(
            db, FINANCE_A, CATEGORY_ID, "100", "Office internet", NOW, "http://x/invoice.pdf"
        )
    assert _added(db, DirectExpenseRequest) == []


@pytest.mark.asyncio
async def test_create_with_unknown_project_is_not_found():
    category = ExpenseCategory(id=CATEGORY_ID, name="Utilities", is_active=True)
    db = _db(_result(category), _result(None))

    with pytest.raises(NotFoundError):
        await direct_expense_svc.create(
            db, FINANCE_A, CATEGORY_ID, "100", "Office internet", NOW, "http://x/invoice.pdf",
            project_id=uuid.uuid4(),
        )


# ─── Approve / reject ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_pending_request():
    request = make_request("PENDING")
    db = _db(_result(request))

    await direct_expense_svc.approve(db, request.id, ADMIN_ID, notes="OK")

    assert request.status == "APPROVED"
    assert request.approved_by_id == ADMIN_ID


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["APPROVED", "PAID", "REJECTED"])
async def test_approve_outside_pending_is_invalid_state(status):
    request = make_request(status)
    db = _db(_result(request))

    with pytest.raises(InvalidStateError):
        await direct_expense_svc.approve(db, request.id, ADMIN_ID)
    assert request.status == status


@pytest.mark.asyncio
async def test_reject_with_empty_reason_leaves_request_pending():
    request = make_request("PENDING")
    db = _db(_result(request))

    with pytest.raises(ValidationError):
        await direct_expense_svc.reject(db, request.id, "", admin_id=ADMIN_ID)

    assert request.status == "PENDING"
    assert request.rejection_reason is None
    db.execute.assert_not_awaited()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_reject_with_reason():
    request = make_request("PENDING")
    db = _db(_result(request))

    await direct_expense_svc.reject(db, request.id, "Duplicate of October invoice", admin_id=ADMIN_ID)

    assert request.status == "REJECTED"
    assert request.rejection_reason == "Duplicate of October invoice"
    assert request.rejected_by_id == ADMIN_ID


# ─── Pay ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_any_finance_user_may_pay_an_approved_request():
    request = make_request("APPROVED", approved_by_id=ADMIN_ID)
    db = _db(_result(request))

    paid, expense = await direct_expense_svc.mark_as_paid(
        db, request.id, FINANCE_B, "http://x/proof.pdf"
    )

    assert paid.status == "PAID"
    assert paid.paid_by_id == FINANCE_B
    assert paid.payment_date is not None
    assert _added(db, Expense) == [expense]
    assert expense.source_type == "DIRECT_EXPENSE"
    assert expense.source_id == request.id
    assert expense.category_id == CATEGORY_ID
    assert expense.amount == Decimal("4200000.00")
    assert expense.project_id is None
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["PENDING", "PAID", "REJECTED"])
async def test_pay_outside_approved_writes_nothing(status):
    request = make_request(status)
    db = _db(_result(request))

    with pytest.raises(InvalidStateError):
        await direct_expense_svc.mark_as_paid(db, request.id, FINANCE_B, "http://x/proof.pdf")

    assert request.status == status
    assert _added(db, Expense) == []


@pytest.mark.asyncio
async def test_pay_keeps_explicit_payment_date():
    request = make_request("APPROVED")
    db = _db(_result(request))
    paid_on = datetime(2026, 9, 30, tzinfo=timezone.utc)

    await direct_expense_svc.mark_as_paid(
        db, request.id, FINANCE_A, "http://x/proof.pdf", payment_date=paid_on
    )

    assert request.payment_date == paid_on


@pytest.mark.asyncio
async def test_pay_rolls_back_when_ledger_write_fails():
    request = make_request("APPROVED", approved_by_id=ADMIN_ID)
    db = _db(_result(request))

    with patch.object(ledger, "record_expense", AsyncMock(side_effect=RuntimeError("db down"))):
        with pytest.raises(RuntimeError):
            await direct_expense_svc.mark_as_paid(db, request.id, FINANCE_B, "http://x/proof.pdf")

    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
