"""Reimbursement lifecycle service.

    PENDING  --review (FINANCE)--> REVIEWED --approve (ADMIN)--> APPROVED --pay (reviewer)--> PAID
    PENDING  --reject (FINANCE)--> REJECTED
    REVIEWED --reject (ADMIN)-->   REJECTED

Every transition loads the row with SELECT ... FOR UPDATE, checks the
current status, stamps actor and timestamp, writes an audit entry and
commits. Payment also writes the ledger row in the same transaction.
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.config import settings
from expenseflow.core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.expense import Expense, ExpenseSourceType
from expenseflow.models.project import Project, ProjectStatus
from expenseflow.models.reimbursement import Reimbursement, ReimbursementStatus
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

SORT_FIELDS = {
    "submitted_at": Reimbursement.submitted_at,
    "reviewed_at": Reimbursement.reviewed_at,
    "approved_at": Reimbursement.approved_at,
    "paid_at": Reimbursement.paid_at,
    "created_at": Reimbursement.created_at,
    "amount": Reimbursement.amount,
}


# ─── Internal helpers ───

async def _load_for_update(db: AsyncSession, reimbursement_id: uuid.UUID) -> Reimbursement:
    result = await db.execute(
        select(Reimbursement).where(Reimbursement.id == reimbursement_id).with_for_update()
    )
    reimbursement = result.scalar_one_or_none()
    if reimbursement is None:
        raise NotFoundError("Reimbursement not found.")
    return reimbursement


def _snapshot(reimbursement: Reimbursement) -> dict:
    return {
        "status": reimbursement.status,
        "reviewed_by_id": reimbursement.reviewed_by_id,
        "approved_by_id": reimbursement.approved_by_id,
        "paid_by_id": reimbursement.paid_by_id,
        "rejected_by_id": reimbursement.rejected_by_id,
    }


async def _get_or_create_reimbursement_category(
    db: AsyncSession, actor_id: uuid.UUID
) -> ExpenseCategory:
    name = settings.REIMBURSEMENT_CATEGORY_NAME
    result = await db.execute(
        select(ExpenseCategory).where(func.lower(ExpenseCategory.name) == name.lower())
    )
    category = result.scalars().first()
    if category is None:
        category = ExpenseCategory(
            name=name,
            description="Default category for staff reimbursements",
            is_active=True,
            created_by_id=actor_id,
        )
        db.add(category)
        await db.flush()
        logger.info("Created default '%s' expense category", name)
    return category


# ─── Submit ───

async def submit(
    db: AsyncSession,
    staff_id: uuid.UUID,
    project_id: uuid.UUID,
    amount,
    description: str,
    expense_date: datetime,
    receipt_url: str,
) -> Reimbursement:
    """Create a PENDING reimbursement for an ACTIVE project."""
    amount = require_positive_amount(amount)
    description = require_text(description, "Description")
    receipt_url = require_text(receipt_url, "Receipt")

    project = (
        await db.execute(select(Project).where(Project.id == project_id))
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project not found.")
    if project.status != ProjectStatus.ACTIVE.value:
        raise ValidationError(
            f"Reimbursements can only be submitted for ACTIVE projects (project is {project.status})."
        )

    reimbursement = Reimbursement(
        submitted_by_id=staff_id,
        project_id=project_id,
        amount=amount,
        description=description,
        expense_date=expense_date,
        receipt_url=receipt_url,
        status=ReimbursementStatus.PENDING.value,
        submitted_at=utcnow(),
    )
    db.add(reimbursement)
    await db.flush()

    await audit_svc.log(
        db=db,
        action="reimbursement_submitted",
        entity_type="reimbursement",
        entity_id=reimbursement.id,
        actor_id=staff_id,
        after={"status": reimbursement.status, "amount": amount, "project_id": project_id},
    )
    await db.commit()

    logger.info("Reimbursement submitted: id=%s staff=%s amount=%s", reimbursement.id, staff_id, amount)
    email_svc.notify_reimbursement_submitted(reimbursement)
    return reimbursement


# ─── Review (FINANCE) ───

async def review(
    db: AsyncSession,
    reimbursement_id: uuid.UUID,
    finance_id: uuid.UUID,
    notes: str | None = None,
) -> Reimbursement:
    reimbursement = await _load_for_update(db, reimbursement_id)
    if reimbursement.status != ReimbursementStatus.PENDING.value:
        raise InvalidStateError(
            "reimbursement", reimbursement.status, ReimbursementStatus.PENDING.value, "review"
        )

    before = _snapshot(reimbursement)
    reimbursement.status = ReimbursementStatus.REVIEWED.value
    reimbursement.reviewed_by_id = finance_id
    reimbursement.reviewed_at = utcnow()
    reimbursement.review_notes = notes
    await db.flush()

    await audit_svc.log(
        db=db,
        action="reimbursement_reviewed",
        entity_type="reimbursement",
        entity_id=reimbursement.id,
        actor_id=finance_id,
        before=before,
        after=_snapshot(reimbursement),
        notes=notes,
    )
    await db.commit()

    logger.info("Reimbursement reviewed: id=%s finance=%s", reimbursement.id, finance_id)
    email_svc.notify_reimbursement_reviewed(reimbursement)
    return reimbursement


# ─── Approve (ADMIN) ───

async def approve(
    db: AsyncSession,
    reimbursement_id: uuid.UUID,
    admin_id: uuid.UUID,
    notes: str | None = None,
) -> Reimbursement:
    reimbursement = await _load_for_update(db, reimbursement_id)
    if reimbursement.status != ReimbursementStatus.REVIEWED.value:
        raise InvalidStateError(
            "reimbursement", reimbursement.status, ReimbursementStatus.REVIEWED.value, "approve"
        )

    before = _snapshot(reimbursement)
    reimbursement.status = ReimbursementStatus.APPROVED.value
    reimbursement.approved_by_id = admin_id
    reimbursement.approved_at = utcnow()
    reimbursement.approval_notes = notes
    await db.flush()

    await audit_svc.log(
        db=db,
        action="reimbursement_approved",
        entity_type="reimbursement",
        entity_id=reimbursement.id,
        actor_id=admin_id,
        before=before,
        after=_snapshot(reimbursement),
        notes=notes,
    )
    await db.commit()

    logger.info("Reimbursement approved: id=%s admin=%s", reimbursement.id, admin_id)
    email_svc.notify_reimbursement_approved(reimbursement)
    return reimbursement


# ─── Reject (FINANCE from PENDING, ADMIN from REVIEWED) ───

async def _reject(
    db: AsyncSession,
    reimbursement_id: uuid.UUID,
    actor_id: uuid.UUID,
    reason: str,
    required_status: ReimbursementStatus,
) -> Reimbursement:
    reason = require_reason(reason)

    reimbursement = await _load_for_update(db, reimbursement_id)
    if reimbursement.status != required_status.value:
        raise InvalidStateError(
            "reimbursement", reimbursement.status, required_status.value, "reject"
        )

    before = _snapshot(reimbursement)
    reimbursement.status = ReimbursementStatus.REJECTED.value
    reimbursement.rejection_reason = reason
    reimbursement.rejected_by_id = actor_id
    reimbursement.rejected_at = utcnow()
    await db.flush()

    await audit_svc.log(
        db=db,
        action="reimbursement_rejected",
        entity_type="reimbursement",
        entity_id=reimbursement.id,
        actor_id=actor_id,
        before=before,
        after=_snapshot(reimbursement),
        notes=reason,
    )
    await db.commit()

    logger.info(
        "Reimbursement rejected: id=%s actor=%s from=%s",
        reimbursement.id, actor_id, required_status.value,
    )
    email_svc.notify_reimbursement_rejected(reimbursement)
    return reimbursement


async def reject_by_finance(
    db: AsyncSession, reimbursement_id: uuid.UUID, finance_id: uuid.UUID, reason: str
) -> Reimbursement:
    return await _reject(db, reimbursement_id, finance_id, reason, ReimbursementStatus.PENDING)


async def reject_by_admin(
    db: AsyncSession, reimbursement_id: uuid.UUID, admin_id: uuid.UUID, reason: str
) -> Reimbursement:
    return await _reject(db, reimbursement_id, admin_id, reason, ReimbursementStatus.REVIEWED)


# ─── Pay (FINANCE, reviewer only) ───

async def mark_as_paid(
    db: AsyncSession,
    reimbursement_id: uuid.UUID,
    finance_id: uuid.UUID,
    payment_proof_url: str,
    payment_notes: str | None = None,
) -> tuple[Reimbursement, Expense]:
    """Mark an APPROVED reimbursement as PAID and record it in the ledger.

    Only the FINANCE user who reviewed the reimbursement may pay it. The
    status change and the ledger insert are committed together; any failure
    rolls both back.

    Raises:
        ValidationError: missing payment proof.
        InvalidStateError: status is not APPROVED.
        AuthorizationError: caller is not the reviewer.
    """
    payment_proof_url = require_text(payment_proof_url, "Payment proof")

    reimbursement = await _load_for_update(db, reimbursement_id)
    if reimbursement.status != ReimbursementStatus.APPROVED.value:
        raise InvalidStateError(
            "reimbursement", reimbursement.status, ReimbursementStatus.APPROVED.value, "pay"
        )
    if str(reimbursement.reviewed_by_id) != str(finance_id):
        raise AuthorizationError(
            "Only the FINANCE user who reviewed this reimbursement can mark it as paid."
        )

    before = _snapshot(reimbursement)
    try:
        category = await _get_or_create_reimbursement_category(db, finance_id)

        reimbursement.status = ReimbursementStatus.PAID.value
        reimbursement.paid_by_id = finance_id
        reimbursement.paid_at = utcnow()
        reimbursement.payment_proof_url = payment_proof_url
        reimbursement.payment_notes = payment_notes
        await db.flush()

        expense = await ledger.record_expense(
            db,
            source_type=ExpenseSourceType.REIMBURSEMENT,
            source=reimbursement,
            category_id=category.id,
            receipt_url=reimbursement.receipt_url,
            payment_proof_url=payment_proof_url,
            recorded_by_id=finance_id,
        )

        await audit_svc.log(
            db=db,
            action="reimbursement_paid",
            entity_type="reimbursement",
            entity_id=reimbursement.id,
            actor_id=finance_id,
            before=before,
            after={**_snapshot(reimbursement), "expense_id": expense.id},
            notes=payment_notes,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.error("Payment of reimbursement %s rolled back", reimbursement_id, exc_info=True)
        raise

    logger.info(
        "Reimbursement paid: id=%s finance=%s amount=%s",
        reimbursement.id, finance_id, reimbursement.amount,
    )
    email_svc.notify_reimbursement_paid(reimbursement)
    return reimbursement, expense


# ─── Read side ───

async def get_reimbursement(db: AsyncSession, reimbursement_id: uuid.UUID) -> Reimbursement:
    result = await db.execute(select(Reimbursement).where(Reimbursement.id == reimbursement_id))
    reimbursement = result.scalar_one_or_none()
    if reimbursement is None:
        raise NotFoundError("Reimbursement not found.")
    return reimbursement


async def list_reimbursements(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    status: str | None = None,
    submitted_by_id: uuid.UUID | None = None,
    reviewed_by_id: uuid.UUID | None = None,
    project_id: uuid.UUID | None = None,
    search: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    sort_by: str = "submitted_at",
    sort_order: str = "desc",
) -> tuple[list[Reimbursement], int]:
    """Return one page of reimbursements and the total matching count."""
    stmt = select(Reimbursement)
    if status:
        stmt = stmt.where(Reimbursement.status == status)
    if submitted_by_id:
        stmt = stmt.where(Reimbursement.submitted_by_id == submitted_by_id)
    if reviewed_by_id:
        stmt = stmt.where(Reimbursement.reviewed_by_id == reviewed_by_id)
    if project_id:
        stmt = stmt.where(Reimbursement.project_id == project_id)
    if search:
        stmt = stmt.where(Reimbursement.description.ilike(f"%{search}%"))
    if from_date:
        stmt = stmt.where(Reimbursement.submitted_at >= from_date)
    if to_date:
        stmt = stmt.where(Reimbursement.submitted_at <= to_date)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = SORT_FIELDS.get(sort_by, Reimbursement.submitted_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    offset = (page - 1) * page_size
    stmt = stmt.order_by(order).offset(offset).limit(page_size)
    items = list((await db.execute(stmt)).scalars().all())
    return items, total


async def list_pending_to_review(db: AsyncSession, page: int = 1, page_size: int = 20):
    return await list_reimbursements(
        db, page, page_size, status=ReimbursementStatus.PENDING.value, sort_order="asc"
    )


async def list_reviewed_to_approve(db: AsyncSession, page: int = 1, page_size: int = 20):
    return await list_reimbursements(
        db, page, page_size, status=ReimbursementStatus.REVIEWED.value,
        sort_by="reviewed_at", sort_order="asc",
    )


async def list_approved_to_pay(
    db: AsyncSession, reviewer_id: uuid.UUID, page: int = 1, page_size: int = 20
):
    """Approved reimbursements the given FINANCE user reviewed (and so may pay)."""
    return await list_reimbursements(
        db, page, page_size,
        status=ReimbursementStatus.APPROVED.value,
        reviewed_by_id=reviewer_id,
        sort_by="approved_at",
        sort_order="asc",
    )


async def get_statistics(db: AsyncSession, submitted_by_id: uuid.UUID | None = None) -> dict:
    filters = []
    if submitted_by_id:
        filters.append(Reimbursement.submitted_by_id == submitted_by_id)
    return await status_summary(db, Reimbursement, ReimbursementStatus, *filters)
