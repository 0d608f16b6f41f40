"""Issue assignment model."""

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, enum_column

if TYPE_CHECKING:
    from .issue import Issue


class AssignmentType(str, Enum):
    """Tier of the delegation chain an assignment belongs to."""

    ADMIN_TO_AREA = "admin_to_area"
    AREA_TO_DEPARTMENT = "area_to_department"
    DEPARTMENT_TO_CONTRACTOR = "department_to_contractor"


class AssignmentStatus(str, Enum):
    """Assignment lifecycle status."""

    ACTIVE = "active"
    COMPLETED = "completed"
    REASSIGNED = "reassigned"
    CANCELLED = "cancelled"


class Assignment(BaseModel):
    """
    One hand-off of an issue down the delegation chain.

    At most one assignment per (issue, assignment_type) is active. Completed
    and cancelled assignments are never modified again.
    """

    __tablename__ = "issue_assignments"

    issue_id: Mapped[int] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_by: Mapped[int] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=False,
    )
    # Person receiving the issue; may be empty when targeting an area or department
    assigned_to: Mapped[int | None] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=True,
        index=True,
    )
    assigned_area_id: Mapped[int | None] = mapped_column(ForeignKey("areas.id"), nullable=True)
    assigned_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"),
        nullable=True,
    )

    assignment_type: Mapped[AssignmentType] = mapped_column(
        enum_column(AssignmentType, "assignmenttype"),
        nullable=False,
    )
    assignment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        enum_column(AssignmentStatus, "assignmentstatus"),
        default=AssignmentStatus.ACTIVE,
        nullable=False,
    )

    # Relationships
    issue: Mapped["Issue"] = relationship("Issue", back_populates="assignments")

    __table_args__ = (
        Index(
            "uq_assignments_one_active_per_type",
            "issue_id",
            "assignment_type",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Assignment(id={self.id}, issue_id={self.issue_id}, "
            f"type={self.assignment_type}, status={self.status})>"
        )
