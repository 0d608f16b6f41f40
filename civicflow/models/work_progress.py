"""Work progress model for contractor submissions."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, enum_column

if TYPE_CHECKING:
    from .tender import Tender


class ProgressType(str, Enum):
    """Kind of progress entry."""

    UPDATE = "update"
    MILESTONE = "milestone"
    COMPLETION = "completion"  # Submitting one moves the tender to work_completed
    ISSUE = "issue"  # Problem encountered on site


class ProgressStatus(str, Enum):
    """Progress entry review status."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    REQUIRES_CHANGES = "requires_changes"


# Review outcomes; an entry that reaches one never changes again
REVIEW_DECISIONS = frozenset(
    {ProgressStatus.APPROVED, ProgressStatus.REJECTED, ProgressStatus.REQUIRES_CHANGES}
)


class WorkProgressEntry(BaseModel):
    """
    Contractor-submitted progress entry against a tender.

    Append-only log: entries are never deleted, and a reviewed entry cannot
    be resubmitted (the contractor files a new one instead).
    """

    __tablename__ = "work_progress"

    tender_id: Mapped[int] = mapped_column(
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contractor_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=False,
        index=True,
    )

    progress_type: Mapped[ProgressType] = mapped_column(
        enum_column(ProgressType, "progresstype"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Attachments (URLs returned by object storage)
    images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    documents: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Site report
    location_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quality_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    materials_used: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    labor_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    challenges_faced: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_steps: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Milestones
    is_milestone: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    milestone_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Review
    requires_verification: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[ProgressStatus] = mapped_column(
        enum_column(ProgressStatus, "progressstatus"),
        default=ProgressStatus.SUBMITTED,
        nullable=False,
    )
    verified_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    extra: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)

    # Relationships
    tender: Mapped["Tender"] = relationship("Tender", back_populates="progress_entries")

    __table_args__ = (
        Index("ix_work_progress_tender_milestone", "tender_id", "is_milestone"),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_work_progress_percentage",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkProgressEntry(id={self.id}, tender_id={self.tender_id}, "
            f"type={self.progress_type}, status={self.status})>"
        )

    @property
    def is_reviewed(self) -> bool:
        return self.status in REVIEW_DECISIONS
