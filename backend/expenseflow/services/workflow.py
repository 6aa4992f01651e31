"""Helpers shared by the reimbursement and direct expense workflows."""
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.config import settings
from expenseflow.core.errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_reason(reason: str | None) -> str:
    """Return the trimmed rejection/revision reason or raise ValidationError."""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("A reason is required.")
    if len(cleaned) < settings.REASON_MIN_LENGTH:
        raise ValidationError(
            f"Reason must be at least {settings.REASON_MIN_LENGTH} characters."
        )
    return cleaned


def require_positive_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (ArithmeticError, ValueError):
        raise ValidationError("Amount must be a number.")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be positive.")
    return value


def require_text(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required.")
    return cleaned


async def status_summary(db: AsyncSession, model, statuses, *filters) -> dict:
    """Count rows per status and total their amounts in one grouped query."""
    stmt = (
        select(model.status, func.count(), func.coalesce(func.sum(model.amount), 0))
        .where(*filters)
        .group_by(model.status)
    )
    rows = (await db.execute(stmt)).all()

    summary: dict = {status.value.lower(): 0 for status in statuses}
    total = 0
    total_amount = Decimal("0")
    for status, count, amount in rows:
        summary[str(status).lower()] = count
        total += count
        total_amount += Decimal(str(amount))
    summary["total"] = total
    summary["total_amount"] = total_amount
    return summary
