import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expenseflow.db.base import Base, Money, TimestampMixin, UUIDMixin


class ProjectStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


# COMPLETED and CANCELLED are terminal.
PROJECT_TRANSITIONS: dict[str, set[str]] = {
    ProjectStatus.ACTIVE.value: {
        ProjectStatus.ON_HOLD.value,
        ProjectStatus.COMPLETED.value,
        ProjectStatus.CANCELLED.value,
    },
    ProjectStatus.ON_HOLD.value: {ProjectStatus.ACTIVE.value},
    ProjectStatus.COMPLETED.value: set(),
    ProjectStatus.CANCELLED.value: set(),
}


class Project(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectStatus.ACTIVE.value, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    revisions: Mapped[list["ProjectRevision"]] = relationship(
        "ProjectRevision", back_populates="project", order_by="ProjectRevision.changed_at.desc()"
    )


class ProjectRevision(Base, UUIDMixin):
    """Append-only record of a project value change."""

    __tablename__ = "project_revisions"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True
    )
    old_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    new_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )

    project: Mapped["Project"] = relationship("Project", back_populates="revisions")
