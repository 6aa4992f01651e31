"""Direct expense request lifecycle service.

    PENDING --approve (ADMIN)--> APPROVED --pay (any FINANCE)--> PAID
    PENDING --reject (ADMIN)-->  REJECTED

Unlike reimbursements there is no review stage, and any FINANCE user may
pay an approved request.
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.errors import InvalidStateError, NotFoundError, ValidationError
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.direct_expense import DirectExpenseRequest, DirectExpenseStatus
from expenseflow.models.expense import Expense, ExpenseSourceType
from expenseflow.models.project import Project
from expenseflow.services import audit as audit_svc
from expenseflow.services import email as email_svc
from expenseflow.services import ledger
from expenseflow.services.workflow import (
    require_positive_amount,
    require_reason,
    require_text,
    status_summary,
    utcnow,
)

logger = logging.getLogger(__name__)


async def _load_for_update(db: AsyncSession, request_id: uuid.UUID) -> DirectExpenseRequest:
    result = await db.execute(
        select(DirectExpenseRequest)
        .where(DirectExpenseRequest.id == request_id)
        .with_for_update()
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Direct expense not found.")
    return request


def _snapshot(request: DirectExpenseRequest) -> dict:
    return {
        "status": request.status,
        "approved_by_id": request.approved_by_id,
        "rejected_by_id": request.rejected_by_id,
        "paid_by_id": request.paid_by_id,
    }


def _require_pending(request: DirectExpenseRequest, action: str) -> None:
    if request.status != DirectExpenseStatus.PENDING.value:
        raise InvalidStateError(
            "direct expense", request.status, DirectExpenseStatus.PENDING.value, action
        )


# ─── Create (FINANCE) ───

async def create(
    db: AsyncSession,
    finance_id: uuid.UUID,
    category_id: uuid.UUID,
    amount,
    description: str,
    expense_date: datetime,
    invoice_url: str,
    project_id: uuid.UUID | None = None,
) -> DirectExpenseRequest:
    """Create a PENDING direct expense. A missing project means a general expense."""
    amount = require_positive_amount(amount)
    description = require_text(description, "Description")
    invoice_url = require_text(invoice_url, "Invoice")

    category = (
        await db.execute(select(ExpenseCategory).where(ExpenseCategory.id == category_id))
    ).scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category not found.")
    if not category.is_active:
        raise ValidationError(f"Category '{category.name}' is inactive.")

    if project_id is not None:
        project = (
            await db.execute(select(Project).where(Project.id == project_id))
        ).scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found.")

    request = DirectExpenseRequest(
        created_by_id=finance_id,
        project_id=project_id,
        category_id=category_id,
        amount=amount,
        description=description,
        expense_date=expense_date,
        invoice_url=invoice_url,
        status=DirectExpenseStatus.PENDING.value,
    )
    db.add(request)
    await db.flush()

    await audit_svc.log(
        db=db,
        action="direct_expense_created",
        entity_type="direct_expense",
        entity_id=request.id,
        actor_id=finance_id,
        after={"status": request.status, "amount": amount, "category_id": category_id},
    )
    await db.commit()

    logger.info("Direct expense created: id=%s finance=%s amount=%s", request.id, finance_id, amount)
    email_svc.notify_direct_expense_created(request)
    return request


# ─── Approve / reject (ADMIN) ───

async def approve(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin_id: uuid.UUID,
    notes: str | None = None,
) -> DirectExpenseRequest:
    request = await _load_for_update(db, request_id)
    _require_pending(request, "approve")

    before = _snapshot(request)
    request.status = DirectExpenseStatus.APPROVED.value
    request.approved_by_id = admin_id
    request.approved_at = utcnow()
    request.approval_notes = notes
    await db.flush()

    await audit_svc.log(
        db=db,
        action="direct_expense_approved",
        entity_type="direct_expense",
        entity_id=request.id,
        actor_id=admin_id,
        before=before,
        after=_snapshot(request),
        notes=notes,
    )
    await db.commit()

    logger.info("Direct expense approved: id=%s admin=%s", request.id, admin_id)
    email_svc.notify_direct_expense_decided(request)
    return request


async def reject(
    db: AsyncSession,
    request_id: uuid.UUID,
    reason: str,
    admin_id: uuid.UUID | None = None,
) -> DirectExpenseRequest:
    reason = require_reason(reason)

    request = await _load_for_update(db, request_id)
    _require_pending(request, "reject")

    before = _snapshot(request)
    request.status = DirectExpenseStatus.REJECTED.value
    request.rejection_reason = reason
    request.rejected_by_id = admin_id
    request.rejected_at = utcnow()
    await db.flush()

    await audit_svc.log(
        db=db,
        action="direct_expense_rejected",
        entity_type="direct_expense",
        entity_id=request.id,
        actor_id=admin_id,
        before=before,
        after=_snapshot(request),
        notes=reason,
    )
    await db.commit()

    logger.info("Direct expense rejected: id=%s admin=%s", request.id, admin_id)
    email_svc.notify_direct_expense_decided(request)
    return request


# ─── Pay (any FINANCE) ───

async def mark_as_paid(
    db: AsyncSession,
    request_id: uuid.UUID,
    finance_id: uuid.UUID,
    payment_proof_url: str,
    payment_notes: str | None = None,
    payment_date: datetime | None = None,
) -> tuple[DirectExpenseRequest, Expense]:
    """Mark an APPROVED request as PAID and write its ledger row atomically."""
    payment_proof_url = require_text(payment_proof_url, "Payment proof")

    request = await _load_for_update(db, request_id)
    if request.status != DirectExpenseStatus.APPROVED.value:
        raise InvalidStateError(
            "direct expense", request.status, DirectExpenseStatus.APPROVED.value, "pay"
        )

    before = _snapshot(request)
    now = utcnow()
    try:
        request.status = DirectExpenseStatus.PAID.value
        request.paid_by_id = finance_id
        request.paid_at = now
        request.payment_date = payment_date or now
        request.payment_proof_url = payment_proof_url
        request.payment_notes = payment_notes
        await db.flush()

        expense = await ledger.record_expense(
            db,
            source_type=ExpenseSourceType.DIRECT_EXPENSE,
            source=request,
            category_id=request.category_id,
            receipt_url=request.invoice_url,
            payment_proof_url=payment_proof_url,
            recorded_by_id=finance_id,
        )

        await audit_svc.log(
            db=db,
            action="direct_expense_paid",
            entity_type="direct_expense",
            entity_id=request.id,
            actor_id=finance_id,
            before=before,
            after={**_snapshot(request), "expense_id": expense.id},
            notes=payment_notes,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.error("Payment of direct expense %s rolled back", request_id, exc_info=True)
        raise

    logger.info(
        "Direct expense paid: id=%s finance=%s amount=%s",
        request.id, finance_id, request.amount,
    )
    email_svc.notify_direct_expense_paid(request)
    return request, expense


# ─── Read side ───

async def get_direct_expense(db: AsyncSession, request_id: uuid.UUID) -> DirectExpenseRequest:
    result = await db.execute(
        select(DirectExpenseRequest).where(DirectExpenseRequest.id == request_id)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Direct expense not found.")
    return request


async def list_direct_expenses(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: str | None = None,
    project_id: uuid.UUID | None = None,
    category_id: uuid.UUID | None = None,
    created_by_id: uuid.UUID | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> tuple[list[DirectExpenseRequest], int]:
    stmt = select(DirectExpenseRequest)
    if status:
        stmt = stmt.where(DirectExpenseRequest.status == status)
    if project_id:
        stmt = stmt.where(DirectExpenseRequest.project_id == project_id)
    if category_id:
        stmt = stmt.where(DirectExpenseRequest.category_id == category_id)
    if created_by_id:
        stmt = stmt.where(DirectExpenseRequest.created_by_id == created_by_id)
    if start_date:
        stmt = stmt.where(DirectExpenseRequest.expense_date >= start_date)
    if end_date:
        stmt = stmt.where(DirectExpenseRequest.expense_date <= end_date)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    offset = (page - 1) * page_size
    stmt = stmt.order_by(DirectExpenseRequest.created_at.desc()).offset(offset).limit(page_size)
    items = list((await db.execute(stmt)).scalars().all())
    return items, total


async def list_pending(db: AsyncSession, page: int = 1, page_size: int = 20):
    return await list_direct_expenses(
        db, page, page_size, status=DirectExpenseStatus.PENDING.value
    )


async def list_approved_to_pay(db: AsyncSession, page: int = 1, page_size: int = 20):
    """Every APPROVED request; any FINANCE user may pay it."""
    return await list_direct_expenses(
        db, page, page_size, status=DirectExpenseStatus.APPROVED.value
    )


async def get_statistics(db: AsyncSession, created_by_id: uuid.UUID | None = None) -> dict:
    filters = []
    if created_by_id:
        filters.append(DirectExpenseRequest.created_by_id == created_by_id)
    return await status_summary(db, DirectExpenseRequest, DirectExpenseStatus, *filters)
