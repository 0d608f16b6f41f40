"""Issue model."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, enum_column

if TYPE_CHECKING:
    from .assignment import Assignment


class IssueStage(str, Enum):
    """Issue workflow stage."""

    REPORTED = "reported"  # Filed by a citizen
    AREA_REVIEW = "area_review"  # Delegated to an area
    DEPARTMENT_ASSIGNED = "department_assigned"  # Delegated to a department
    CONTRACTOR_ASSIGNED = "contractor_assigned"  # Delegated to a contractor
    IN_PROGRESS = "in_progress"  # Work underway
    DEPARTMENT_REVIEW = "department_review"  # Work reported done, awaiting sign-off
    RESOLVED = "resolved"  # Terminal


class IssuePriority(str, Enum):
    """Reporter-assigned urgency."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Issue(BaseModel):
    """
    Civic issue reported by a citizen.

    Lifecycle:
    1. reported -> Filed by a citizen
    2. area_review -> Platform admin delegated it to an area
    3. department_assigned -> Area supervisor delegated it to a department
    4. contractor_assigned -> Department admin delegated it to a contractor
    5. in_progress -> Work started (or a tender for it was awarded)
    6. department_review -> Assignee reported the work complete
    7. resolved -> Signed off with resolution notes; no further changes
    """

    __tablename__ = "issues"

    reporter_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=False,
        index=True,
    )

    # Report details
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    priority: Mapped[IssuePriority] = mapped_column(
        enum_column(IssuePriority, "issuepriority"),
        default=IssuePriority.MEDIUM,
        nullable=False,
    )

    # Workflow
    workflow_stage: Mapped[IssueStage] = mapped_column(
        enum_column(IssueStage, "issuestage"),
        default=IssueStage.REPORTED,
        index=True,
        nullable=False,
    )
    assigned_area_id: Mapped[int | None] = mapped_column(
        ForeignKey("areas.id"),
        nullable=True,
        index=True,
    )
    assigned_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"),
        nullable=True,
        index=True,
    )
    current_assignee_id: Mapped[int | None] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=True,
        index=True,
    )

    # Resolution
    final_resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    assignments: Mapped[list["Assignment"]] = relationship(
        "Assignment",
        back_populates="issue",
        order_by="Assignment.id",
    )

    __table_args__ = (
        Index("ix_issues_stage_created", "workflow_stage", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Issue(id={self.id}, stage={self.workflow_stage})>"

    @property
    def is_resolved(self) -> bool:
        return self.workflow_stage == IssueStage.RESOLVED
