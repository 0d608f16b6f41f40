"""Tender model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, enum_column

if TYPE_CHECKING:
    from .bid import Bid
    from .document import Document
    from .work_progress import WorkProgressEntry


class TenderStage(str, Enum):
    """Tender workflow stage."""

    CREATED = "created"
    BIDDING_OPEN = "bidding_open"
    BIDDING_CLOSED = "bidding_closed"
    UNDER_REVIEW = "under_review"
    AWARDED = "awarded"
    WORK_IN_PROGRESS = "work_in_progress"
    WORK_COMPLETED = "work_completed"
    VERIFIED = "verified"
    CLOSED = "closed"


# Stages in which the tender has an awarded contractor
AWARDED_STAGES = frozenset(
    {
        TenderStage.AWARDED,
        TenderStage.WORK_IN_PROGRESS,
        TenderStage.WORK_COMPLETED,
        TenderStage.VERIFIED,
        TenderStage.CLOSED,
    }
)


class Tender(BaseModel):
    """
    Tender entity representing a department's call for bids.

    Lifecycle:
    1. created -> Drafted by a department admin, optionally from an issue
    2. bidding_open -> Contractors may submit bids
    3. bidding_closed -> No new bids
    4. under_review -> Bids are being evaluated
    5. awarded -> A bid was accepted, contractor recorded
    6. work_in_progress -> Contractor started work
    7. work_completed -> Contractor submitted a completion report
    8. verified -> Department admin verified the work
    9. closed -> Terminal
    """

    __tablename__ = "tenders"

    title: Mapped[str] = mapped_column(String(1000), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Ownership
    department_id: Mapped[int] = mapped_column(
        ForeignKey("departments.id"),
        nullable=False,
        index=True,
    )
    source_issue_id: Mapped[int | None] = mapped_column(
        ForeignKey("issues.id"),
        nullable=True,
        index=True,
    )
    created_by: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)

    estimated_value: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    bid_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Workflow
    workflow_stage: Mapped[TenderStage] = mapped_column(
        enum_column(TenderStage, "tenderstage"),
        default=TenderStage.CREATED,
        index=True,
        nullable=False,
    )

    # Award
    awarded_contractor_id: Mapped[int | None] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=True,
        index=True,
    )
    awarded_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    awarded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Execution
    work_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    work_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Verification
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    bids: Mapped[list["Bid"]] = relationship(
        "Bid",
        back_populates="tender",
        cascade="all, delete-orphan",
    )
    progress_entries: Mapped[list["WorkProgressEntry"]] = relationship(
        "WorkProgressEntry",
        back_populates="tender",
        cascade="all, delete-orphan",
    )
    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="tender",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_tenders_stage_created", "workflow_stage", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Tender(id={self.id}, stage={self.workflow_stage})>"

    @property
    def is_awarded(self) -> bool:
        """Check if the tender has passed the award."""
        return self.workflow_stage in AWARDED_STAGES

    @property
    def accepts_bids(self) -> bool:
        return self.workflow_stage == TenderStage.BIDDING_OPEN
