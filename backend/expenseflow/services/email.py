"""Workflow notification service: console mock (MAIL_ENABLED=False).

When MAIL_ENABLED is False, notification content is written to the log
instead of being sent. Set MAIL_ENABLED=True to wire a real transport.
Every function is called after the transition has been committed.
"""
import logging

from expenseflow.core.config import settings

logger = logging.getLogger(__name__)


def _format_amount(amount) -> str:
    return f"{float(amount):,.2f}" if amount is not None else "N/A"


def _send(recipient: str, subject: str, body: str) -> None:
    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== NOTIFICATION ===\n"
            "To: %s\n"
            "Subject: %s\n"
            "%s\n"
            "====================",
            recipient,
            subject,
            body,
        )
        return

    logger.warning(
        "MAIL_ENABLED=True but no mail transport is configured. "
        "Notification '%s' to %s was not sent.",
        subject,
        recipient,
    )


# ─── Reimbursements ───

def notify_reimbursement_submitted(reimbursement) -> None:
    _send(
        "FINANCE",
        f"New reimbursement to review: {_format_amount(reimbursement.amount)}",
        f"Reimbursement {reimbursement.id} is waiting for review.",
    )


def notify_reimbursement_reviewed(reimbursement) -> None:
    _send(
        "ADMIN",
        f"Reimbursement awaiting approval: {_format_amount(reimbursement.amount)}",
        f"Reimbursement {reimbursement.id} was reviewed by {reimbursement.reviewed_by_id}.",
    )


def notify_reimbursement_approved(reimbursement) -> None:
    _send(
        str(reimbursement.submitted_by_id),
        "Your reimbursement was approved",
        f"Reimbursement {reimbursement.id} is approved and queued for payment "
        f"by {reimbursement.reviewed_by_id}.",
    )


def notify_reimbursement_rejected(reimbursement) -> None:
    _send(
        str(reimbursement.submitted_by_id),
        "Your reimbursement was rejected",
        f"Reimbursement {reimbursement.id} was rejected: {reimbursement.rejection_reason}",
    )


def notify_reimbursement_paid(reimbursement) -> None:
    _send(
        str(reimbursement.submitted_by_id),
        f"Reimbursement paid: {_format_amount(reimbursement.amount)}",
        f"Reimbursement {reimbursement.id} was paid. Proof: {reimbursement.payment_proof_url}",
    )


# ─── Direct expenses ───

def notify_direct_expense_created(request) -> None:
    _send(
        "ADMIN",
        f"Direct expense awaiting approval: {_format_amount(request.amount)}",
        f"Direct expense {request.id} was created by {request.created_by_id}.",
    )


def notify_direct_expense_decided(request) -> None:
    _send(
        str(request.created_by_id),
        f"Direct expense {request.status.lower()}",
        f"Direct expense {request.id} is now {request.status}."
        + (f" Reason: {request.rejection_reason}" if request.rejection_reason else ""),
    )


def notify_direct_expense_paid(request) -> None:
    _send(
        str(request.created_by_id),
        f"Direct expense paid: {_format_amount(request.amount)}",
        f"Direct expense {request.id} was paid by {request.paid_by_id}.",
    )
