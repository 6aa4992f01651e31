"""Project management: creation, edits, status moves and value revisions."""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expenseflow.core.errors import BusinessRuleError, InvalidStateError, NotFoundError, ValidationError
from expenseflow.models.direct_expense import DirectExpenseRequest
from expenseflow.models.expense import Expense
from expenseflow.models.project import PROJECT_TRANSITIONS, Project, ProjectRevision, ProjectStatus
from expenseflow.models.reimbursement import Reimbursement
from expenseflow.services import audit as audit_svc
from expenseflow.services.workflow import require_positive_amount, require_reason, require_text, utcnow

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "name": Project.name,
    "client_name": Project.client_name,
    "deadline": Project.deadline,
    "value": Project.value,
    "created_at": Project.created_at,
}


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _load(db: AsyncSession, project_id: uuid.UUID, for_update: bool = False) -> Project:
    stmt = select(Project).where(Project.id == project_id)
    if for_update:
        stmt = stmt.with_for_update()
    project = (await db.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project not found.")
    return project


# ─── Create / update ───

async def create_project(
    db: AsyncSession,
    admin_id: uuid.UUID,
    name: str,
    client_name: str,
    value,
    deadline: datetime,
    description: str | None = None,
    status: str = ProjectStatus.ACTIVE.value,
) -> Project:
    name = require_text(name, "Project name")
    client_name = require_text(client_name, "Client name")
    value = require_positive_amount(value)
    if _as_aware(deadline) < utcnow():
        raise ValidationError("Deadline must be in the future.")

    project = Project(
        name=name,
        client_name=client_name,
        value=value,
        deadline=deadline,
        status=status,
        description=description,
        created_by_id=admin_id,
    )
    db.add(project)
    await db.flush()
    await audit_svc.log(
        db=db,
        action="project_created",
        entity_type="project",
        entity_id=project.id,
        actor_id=admin_id,
        after={"name": name, "value": value, "status": status},
    )
    await db.commit()
    logger.info("Project created: id=%s name=%s value=%s", project.id, name, value)
    return project


async def update_project(
    db: AsyncSession,
    project_id: uuid.UUID,
    updates: dict,
) -> Project:
    """Apply descriptive edits. Value changes must go through update_value()."""
    project = await _load(db, project_id, for_update=True)

    if "value" in updates and updates["value"] is not None:
        if Decimal(str(updates["value"])) != project.value:
            raise ValidationError("Use the update-value endpoint to change the project value.")
    if "status" in updates and updates["status"] not in (None, project.status):
        raise ValidationError("Use the status endpoints to change the project status.")

    deadline = updates.get("deadline")
    if deadline is not None and _as_aware(deadline) < utcnow() and project.status == ProjectStatus.ACTIVE.value:
        raise ValidationError("Deadline must be in the future for active projects.")

    for field in ("name", "client_name", "deadline", "description"):
        if field in updates and updates[field] is not None:
            setattr(project, field, updates[field])

    await db.flush()
    await db.commit()
    return project


# ─── Value revision ───

async def update_value(
    db: AsyncSession,
    project_id: uuid.UUID,
    new_value,
    reason: str,
    actor_id: uuid.UUID,
) -> Project:
    """Change the project value and append a ProjectRevision in one transaction.

    Raises:
        ValidationError: non-positive value, unchanged value, or short reason.
        NotFoundError: unknown project.
    """
    new_value = require_positive_amount(new_value)
    reason = require_reason(reason)

    project = await _load(db, project_id, for_update=True)
    old_value = project.value
    if Decimal(str(old_value)) == new_value:
        raise ValidationError("New value must be different from current value.")

    try:
        revision = ProjectRevision(
            project_id=project.id,
            old_value=old_value,
            new_value=new_value,
            reason=reason,
            changed_by_id=actor_id,
            changed_at=utcnow(),
        )
        db.add(revision)
        project.value = new_value
        await db.flush()

        await audit_svc.log(
            db=db,
            action="project_value_updated",
            entity_type="project",
            entity_id=project.id,
            actor_id=actor_id,
            before={"value": old_value},
            after={"value": new_value},
            notes=reason,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.error("Value revision of project %s rolled back", project_id, exc_info=True)
        raise

    logger.info("Project value updated: id=%s %s -> %s", project.id, old_value, new_value)
    return project


# ─── Status ───

async def change_status(
    db: AsyncSession,
    project_id: uuid.UUID,
    target: ProjectStatus,
    actor_id: uuid.UUID | None = None,
) -> Project:
    project = await _load(db, project_id, for_update=True)
    current = project.status
    if target.value not in PROJECT_TRANSITIONS.get(current, set()):
        allowed_from = tuple(
            status for status, targets in PROJECT_TRANSITIONS.items() if target.value in targets
        )
        raise InvalidStateError("project", current, allowed_from, f"move to {target.value}")

    project.status = target.value
    await db.flush()
    await audit_svc.log(
        db=db,
        action="project_status_changed",
        entity_type="project",
        entity_id=project.id,
        actor_id=actor_id,
        before={"status": current},
        after={"status": target.value},
    )
    await db.commit()
    logger.info("Project status changed: id=%s %s -> %s", project.id, current, target.value)
    return project


async def complete_project(db, project_id, actor_id=None):
    return await change_status(db, project_id, ProjectStatus.COMPLETED, actor_id)


async def cancel_project(db, project_id, actor_id=None):
    return await change_status(db, project_id, ProjectStatus.CANCELLED, actor_id)


async def hold_project(db, project_id, actor_id=None):
    return await change_status(db, project_id, ProjectStatus.ON_HOLD, actor_id)


async def reactivate_project(db, project_id, actor_id=None):
    return await change_status(db, project_id, ProjectStatus.ACTIVE, actor_id)


# ─── Delete ───

async def usage_count(db: AsyncSession, project_id: uuid.UUID) -> int:
    """Rows that reference the project and so block its deletion."""
    total = 0
    for model in (Reimbursement, DirectExpenseRequest, Expense, ProjectRevision):
        total += (
            await db.execute(
                select(func.count()).select_from(model).where(model.project_id == project_id)
            )
        ).scalar_one()
    return total


async def delete_project(db: AsyncSession, project_id: uuid.UUID) -> None:
    project = await _load(db, project_id)
    if await usage_count(db, project_id) > 0:
        raise BusinessRuleError(
            "Cannot delete a project with expenses or history. Cancel it instead."
        )
    await db.delete(project)
    await db.commit()
    logger.info("Project deleted: id=%s", project_id)


# ─── Read side ───

async def get_project_detail(db: AsyncSession, project_id: uuid.UUID) -> dict:
    """Project plus the ledger total recorded against it and the remaining budget."""
    project = await _load(db, project_id)
    total_expenses = (
        await db.execute(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(Expense.project_id == project_id)
        )
    ).scalar_one()
    total_expenses = Decimal(str(total_expenses))
    return {
        "project": project,
        "total_expenses": total_expenses,
        "remaining_budget": Decimal(str(project.value)) - total_expenses,
    }


async def list_projects(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    status: str | None = None,
    client_name: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> tuple[list[Project], int]:
    stmt = select(Project)
    if status:
        stmt = stmt.where(Project.status == status)
    if client_name:
        stmt = stmt.where(Project.client_name.ilike(f"%{client_name}%"))
    if search:
        stmt = stmt.where(Project.name.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = SORT_FIELDS.get(sort_by, Project.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    offset = (page - 1) * page_size
    stmt = stmt.order_by(order).offset(offset).limit(page_size)
    items = list((await db.execute(stmt)).scalars().all())
    return items, total


async def list_revisions(db: AsyncSession, project_id: uuid.UUID) -> list[ProjectRevision]:
    await _load(db, project_id)
    stmt = (
        select(ProjectRevision)
        .where(ProjectRevision.project_id == project_id)
        .order_by(ProjectRevision.changed_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())
