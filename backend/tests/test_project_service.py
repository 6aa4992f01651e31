"""Tests for project management: value revisions, status moves and deletion."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

import expenseflow.models  # noqa: F401
from expenseflow.core.errors import BusinessRuleError, InvalidStateError, ValidationError
from expenseflow.models.project import Project, ProjectRevision
from expenseflow.services import project as project_svc

ADMIN_ID = uuid.uuid4()


def _result(obj=None, count=0):
    result = MagicMock()
    result.scalar_one_or_none.return_value = obj
    result.scalar_one.return_value = count
    return result


def _db(*results):
    db = AsyncMock()
    db.add = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    return db


def _added(db, model):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], model)]


def make_project(status: str = "ACTIVE", value: str = "1000000") -> Project:
    return Project(
        id=uuid.uuid4(),
        name="Warehouse retrofit",
        client_name="PT Maju",
        value=Decimal(value),
        deadline=datetime.now(timezone.utc) + timedelta(days=90),
        status=status,
        created_by_id=ADMIN_ID,
    )


# ─── Create / update ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_project_with_past_deadline_fails():
    db = _db()
    with pytest.raises(ValidationError):
        await project_svc.create_project(
            db, ADMIN_ID, "Warehouse", "PT Maju", "500000",
            datetime.now(timezone.utc) - timedelta(days=1),
        )
    assert _added(db, Project) == []


@pytest.mark.asyncio
async def test_create_project_defaults_to_active():
    db = _db()
    project = await project_svc.create_project(
        db, ADMIN_ID, "Warehouse", "PT Maju", "500000",
        datetime.now(timezone.utc) + timedelta(days=30),
    )
    assert project.status == "ACTIVE"
    assert project.value == Decimal("500000")
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_refuses_value_change():
    project = make_project()
    db = _db(_result(project))

    with pytest.raises(ValidationError):
        await project_svc.update_project(db, project.id, {"value": Decimal("2000000")})
    assert project.value == Decimal("1000000")


@pytest.mark.asyncio
async def test_update_edits_descriptive_fields():
    project = make_project()
    db = _db(_result(project))

    await project_svc.update_project(
        db, project.id, {"name": "Warehouse B", "value": Decimal("1000000")}
    )
    assert project.name == "Warehouse B"
    db.commit.assert_awaited_once()


# ─── Value revision ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_update_value_appends_one_revision_with_old_value():
    project = make_project(value="1000000")
    db = _db(_result(project))

    await project_svc.update_value(
        db, project.id, Decimal("1250000"), "Client added a second floor", ADMIN_ID
    )

    revisions = _added(db, ProjectRevision)
    assert len(revisions) == 1
    assert revisions[0].old_value == Decimal("1000000")
    assert revisions[0].new_value == Decimal("1250000")
    assert revisions[0].reason == "Client added a second floor"
    assert revisions[0].changed_by_id == ADMIN_ID
    assert project.value == Decimal("1250000")
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_value_rolls_back_when_revision_write_fails():
    project = make_project(value="1000000")
    db = _db(_result(project))
    db.flush = AsyncMock(side_effect=RuntimeError("db down"))

    with pytest.raises(RuntimeError):
        await project_svc.update_value(
            db, project.id, Decimal("1250000"), "Client added a second floor", ADMIN_ID
        )

    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_value_equal_to_current_is_rejected():
    project = make_project(value="1000000")
    db = _db(_result(project))

    with pytest.raises(ValidationError):
        await project_svc.update_value(
            db, project.id, Decimal("1000000.00"), "Client added a second floor", ADMIN_ID
        )
    assert _added(db, ProjectRevision) == []
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("new_value", ["0", "-100"])
async def test_update_value_non_positive_is_rejected_before_load(new_value):
    db = _db()
    with pytest.raises(ValidationError):
        await project_svc.update_value(
            db, uuid.uuid4(), new_value, "Client added a second floor", ADMIN_ID
        )
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_value_short_reason_is_rejected_before_load():
    db = _db()
    with pytest.raises(ValidationError):
        await project_svc.update_value(db, uuid.uuid4(), "2000000", "bigger", ADMIN_ID)
    db.execute.assert_not_awaited()


# ─── Status moves ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_hold_then_reactivate():
    project = make_project("ACTIVE")

    await project_svc.hold_project(_db(_result(project)), project.id, ADMIN_ID)
    assert project.status == "ON_HOLD"

    await project_svc.reactivate_project(_db(_result(project)), project.id, ADMIN_ID)
    assert project.status == "ACTIVE"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "current,move",
    [
        ("COMPLETED", project_svc.reactivate_project),
        ("CANCELLED", project_svc.complete_project),
        ("ON_HOLD", project_svc.complete_project),
        ("ON_HOLD", project_svc.cancel_project),
        ("ACTIVE", project_svc.reactivate_project),
    ],
)
async def test_illegal_status_moves(current, move):
    project = make_project(current)
    db = _db(_result(project))

    with pytest.raises(InvalidStateError) as exc_info:
        await move(db, project.id, ADMIN_ID)

    assert exc_info.value.current == current
    assert project.status == current
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_complete_active_project():
    project = make_project("ACTIVE")
    await project_svc.complete_project(_db(_result(project)), project.id, ADMIN_ID)
    assert project.status == "COMPLETED"


# ─── Delete / detail ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_refused_while_expenses_reference_project():
    project = make_project()
    db = _db(_result(project), _result(count=0), _result(count=0), _result(count=1), _result(count=0))

    with pytest.raises(BusinessRuleError):
        await project_svc.delete_project(db, project.id)
    db.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_unused_project():
    project = make_project()
    db = _db(_result(project), *[_result(count=0) for _ in range(4)])

    await project_svc.delete_project(db, project.id)

    db.delete.assert_awaited_once_with(project)
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_project_detail_reports_remaining_budget():
    project = make_project(value="1000000")
    db = _db(_result(project), _result(count=Decimal("350000.00")))

    detail = await project_svc.get_project_detail(db, project.id)

    assert detail["project"] is project
    assert detail["total_expenses"] == Decimal("350000.00")
    assert detail["remaining_budget"] == Decimal("650000.00")
