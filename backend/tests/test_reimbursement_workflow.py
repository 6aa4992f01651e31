"""Tests for the reimbursement lifecycle service.

The service is exercised against AsyncMock sessions: each ``execute`` call
returns the next staged result, and ``db.add`` records what would have been
inserted.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import expenseflow.models  # noqa: F401
from expenseflow.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.expense import Expense
from expenseflow.models.project import Project
from expenseflow.models.reimbursement import Reimbursement
from expenseflow.services import ledger
from expenseflow.services import reimbursement as reimbursement_svc

STAFF_ID = uuid.uuid4()
FINANCE_ID = uuid.uuid4()
OTHER_FINANCE_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
PROJECT_ID = uuid.uuid4()
NOW = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _result(obj=None, count: int = 0):
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


def _added(db, model):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], model)]


def make_reimbursement(status: str = "PENDING", **overrides) -> Reimbursement:
    fields = dict(
        id=uuid.uuid4(),
        submitted_by_id=STAFF_ID,
        project_id=PROJECT_ID,
        amount=Decimal("250000.00"),
        description="Taxi to client site",
        expense_date=NOW,
        receipt_url="http://localhost:9000/expense-documents/receipt/a.pdf",
        status=status,
        submitted_at=NOW,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Reimbursement(**fields)


def make_category() -> ExpenseCategory:
    return ExpenseCategory(id=uuid.uuid4(), name="Reimbursement", is_active=True)


# ─── Submit ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_submit_creates_pending_reimbursement():
    project = Project(id=PROJECT_ID, name="Tower A", status="ACTIVE", value=Decimal("1000000"))
    db = _db(_result(project))

    reimbursement = await reimbursement_svc.submit(
        db, STAFF_ID, PROJECT_ID, "125000", "Cement samples", NOW, "http://x/receipt.pdf"
    )

    assert reimbursement.status == "PENDING"
    assert reimbursement.submitted_by_id == STAFF_ID
    assert reimbursement.amount == Decimal("125000")
    assert _added(db, Reimbursement) == [reimbursement]
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_submit_rejects_inactive_project():
    project = Project(id=PROJECT_ID, name="Tower A", status="ON_HOLD", value=Decimal("1000000"))
    db = _db(_result(project))

    with pytest.raises(ValidationError):
        await reimbursement_svc.submit(
            db, STAFF_ID, PROJECT_ID, "100", "Cement samples", NOW, "http://x/receipt.pdf"
        )
    assert _added(db, Reimbursement) == []
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5", "abc"])
async def test_submit_rejects_non_positive_amount_before_any_query(amount):
    db = _db()
    with pytest.raises(ValidationError):
        await reimbursement_svc.submit(
            db, STAFF_ID, PROJECT_ID, amount, "Cement samples", NOW, "http://x/receipt.pdf"
        )
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_unknown_project_is_not_found():
    db = _db(_result(None))
    with pytest.raises(NotFoundError):
        await reimbursement_svc.submit(
            db, STAFF_ID, PROJECT_ID, "100", "Cement samples", NOW, "http://x/receipt.pdf"
        )


# ─── Review ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_review_pending_sets_reviewer():
    reimbursement = make_reimbursement("PENDING")
    db = _db(_result(reimbursement))

    await reimbursement_svc.review(db, reimbursement.id, FINANCE_ID, notes="Receipt matches")

    assert reimbursement.status == "REVIEWED"
    assert reimbursement.reviewed_by_id == FINANCE_ID
    assert reimbursement.reviewed_at is not None
    assert reimbursement.review_notes == "Receipt matches"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["REVIEWED", "APPROVED", "PAID", "REJECTED"])
async def test_review_outside_pending_is_invalid_state(status):
    reimbursement = make_reimbursement(status)
    db = _db(_result(reimbursement))

    with pytest.raises(InvalidStateError) as exc_info:
        await reimbursement_svc.review(db, reimbursement.id, FINANCE_ID)

    assert exc_info.value.current == status
    assert exc_info.value.required == "PENDING"
    assert reimbursement.status == status
    assert reimbursement.reviewed_by_id is None
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_review_missing_reimbursement_is_not_found():
    db = _db(_result(None))
    with pytest.raises(NotFoundError):
        await reimbursement_svc.review(db, uuid.uuid4(), FINANCE_ID)


# ─── Approve / reject ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_requires_reviewed():
    reimbursement = make_reimbursement("PENDING")
    db = _db(_result(reimbursement))

    with pytest.raises(InvalidStateError):
        await reimbursement_svc.approve(db, reimbursement.id, ADMIN_ID)
    assert reimbursement.status == "PENDING"


@pytest.mark.asyncio
async def test_approve_reviewed_keeps_reviewer():
    reimbursement = make_reimbursement("REVIEWED", reviewed_by_id=FINANCE_ID)
    db = _db(_result(reimbursement))

    await reimbursement_svc.approve(db, reimbursement.id, ADMIN_ID)

    assert reimbursement.status == "APPROVED"
    assert reimbursement.approved_by_id == ADMIN_ID
    assert reimbursement.reviewed_by_id == FINANCE_ID


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", ["", "   ", "too short", "  short   "])
async def test_reject_short_reason_fails_before_state_is_read(reason):
    db = _db()
    with pytest.raises(ValidationError):
        await reimbursement_svc.reject_by_finance(db, uuid.uuid4(), FINANCE_ID, reason)
    db.execute.assert_not_awaited()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_finance_reject_stores_trimmed_reason():
    reimbursement = make_reimbursement("PENDING")
    db = _db(_result(reimbursement))

    await reimbursement_svc.reject_by_finance(
        db, reimbursement.id, FINANCE_ID, "  Receipt is unreadable  "
    )

    assert reimbursement.status == "REJECTED"
    assert reimbursement.rejection_reason == "Receipt is unreadable"
    assert reimbursement.rejected_by_id == FINANCE_ID


@pytest.mark.asyncio
async def test_admin_cannot_reject_pending():
    reimbursement = make_reimbursement("PENDING")
    db = _db(_result(reimbursement))

    with pytest.raises(InvalidStateError):
        await reimbursement_svc.reject_by_admin(
            db, reimbursement.id, ADMIN_ID, "Not a project expense"
        )
    assert reimbursement.status == "PENDING"


# ─── Pay ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_pay_by_reviewer_writes_one_ledger_row():
    reimbursement = make_reimbursement("APPROVED", reviewed_by_id=FINANCE_ID, approved_by_id=ADMIN_ID)
    category = make_category()
    db = _db(_result(reimbursement), _result(category))

    paid, expense = await reimbursement_svc.mark_as_paid(
        db, reimbursement.id, FINANCE_ID, "http://x/proof.pdf", payment_notes="BCA transfer"
    )

    assert paid.status == "PAID"
    assert paid.paid_by_id == FINANCE_ID
    expenses = _added(db, Expense)
    assert expenses == [expense]
    assert expense.source_type == "REIMBURSEMENT"
    assert expense.source_id == reimbursement.id
    assert expense.amount == reimbursement.amount
    assert expense.category_id == category.id
    assert expense.payment_proof_url == "http://x/proof.pdf"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_pay_by_other_finance_user_is_forbidden():
    reimbursement = make_reimbursement("APPROVED", reviewed_by_id=FINANCE_ID)
    db = _db(_result(reimbursement))

    with pytest.raises(AuthorizationError):
        await reimbursement_svc.mark_as_paid(
            db, reimbursement.id, OTHER_FINANCE_ID, "http://x/proof.pdf"
        )

    assert reimbursement.status == "APPROVED"
    assert _added(db, Expense) == []
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["PENDING", "REVIEWED", "PAID", "REJECTED"])
async def test_pay_outside_approved_writes_nothing(status):
    reimbursement = make_reimbursement(status, reviewed_by_id=FINANCE_ID)
    db = _db(_result(reimbursement))

    with pytest.raises(InvalidStateError):
        await reimbursement_svc.mark_as_paid(db, reimbursement.id, FINANCE_ID, "http://x/proof.pdf")

    assert reimbursement.status == status
    assert _added(db, Expense) == []


@pytest.mark.asyncio
async def test_pay_without_proof_fails_before_state_is_read():
    db = _db()
    with pytest.raises(ValidationError):
        await reimbursement_svc.mark_as_paid(db, uuid.uuid4(), FINANCE_ID, "  ")
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_pay_rolls_back_when_ledger_write_fails():
    reimbursement = make_reimbursement("APPROVED", reviewed_by_id=FINANCE_ID)
    db = _db(_result(reimbursement), _result(make_category()))

    with patch.object(ledger, "record_expense", AsyncMock(side_effect=RuntimeError("db down"))):
        with pytest.raises(RuntimeError):
            await reimbursement_svc.mark_as_paid(
                db, reimbursement.id, FINANCE_ID, "http://x/proof.pdf"
            )

    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_pay_creates_reimbursement_category_when_missing():
    reimbursement = make_reimbursement("APPROVED", reviewed_by_id=FINANCE_ID)
    db = _db(_result(reimbursement), _result(None))

    await reimbursement_svc.mark_as_paid(db, reimbursement.id, FINANCE_ID, "http://x/proof.pdf")

    categories = _added(db, ExpenseCategory)
    assert len(categories) == 1
    assert categories[0].name == "Reimbursement"
    assert len(_added(db, Expense)) == 1


@pytest.mark.asyncio
async def test_pay_reuses_reimbursement_category_regardless_of_case():
    reimbursement = make_reimbursement("APPROVED", reviewed_by_id=FINANCE_ID)
    existing = ExpenseCategory(id=uuid.uuid4(), name="reimbursement", is_active=True)
    db = _db(_result(reimbursement), _result(existing))

    _, expense = await reimbursement_svc.mark_as_paid(
        db, reimbursement.id, FINANCE_ID, "http://x/proof.pdf"
    )

    assert _added(db, ExpenseCategory) == []
    assert expense.category_id == existing.id
    lookup = str(db.execute.await_args_list[1].args[0])
    assert "lower(expense_categories.name)" in lookup


# ─── End to end ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_full_lifecycle_for_1_5_million():
    project = Project(id=PROJECT_ID, name="Tower A", status="ACTIVE", value=Decimal("9000000"))
    reimbursement = await reimbursement_svc.submit(
        _db(_result(project)),
        STAFF_ID, PROJECT_ID, Decimal("1500000"), "Site survey equipment", NOW, "http://x/r.pdf",
    )
    reimbursement.id = uuid.uuid4()
    assert reimbursement.status == "PENDING"

    await reimbursement_svc.review(_db(_result(reimbursement)), reimbursement.id, FINANCE_ID)
    assert reimbursement.status == "REVIEWED"
    assert reimbursement.reviewed_by_id == FINANCE_ID

    await reimbursement_svc.approve(_db(_result(reimbursement)), reimbursement.id, ADMIN_ID)
    assert reimbursement.status == "APPROVED"

    pay_db = _db(_result(reimbursement), _result(make_category()))
    _, expense = await reimbursement_svc.mark_as_paid(
        pay_db, reimbursement.id, FINANCE_ID, "http://x/proof.pdf"
    )

    assert reimbursement.status == "PAID"
    assert _added(pay_db, Expense) == [expense]
    assert expense.amount == Decimal("1500000")
    assert expense.project_id == PROJECT_ID
    assert expense.source_id == reimbursement.id


# ─── Statistics ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_statistics_fill_missing_statuses():
    result = MagicMock()
    result.all.return_value = [("PENDING", 2, Decimal("300")), ("PAID", 1, Decimal("1500000"))]
    db = _db(result)

    stats = await reimbursement_svc.get_statistics(db, submitted_by_id=STAFF_ID)

    assert stats["pending"] == 2
    assert stats["paid"] == 1
    assert stats["reviewed"] == 0
    assert stats["total"] == 3
    assert stats["total_amount"] == Decimal("1500300")
