"""Bid and bid evaluation models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, enum_column

if TYPE_CHECKING:
    from .tender import Tender


class BidStatus(str, Enum):
    """Bid status."""

    SUBMITTED = "submitted"
    UNDER_EVALUATION = "under_evaluation"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# Bids still competing for the award
LIVE_BID_STATUSES = frozenset({BidStatus.SUBMITTED, BidStatus.UNDER_EVALUATION})


class Recommendation(str, Enum):
    """Evaluator recommendation."""

    ACCEPT = "accept"
    REJECT = "reject"
    REQUEST_CLARIFICATION = "request_clarification"


class Bid(BaseModel):
    """
    Contractor bid on a tender.

    At most one bid per tender is ever accepted. Acceptance is terminal for
    the bid; sibling bids are handled according to the configured policy.
    """

    __tablename__ = "bids"

    tender_id: Mapped[int] = mapped_column(
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bidder_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    proposal: Mapped[str | None] = mapped_column(Text, nullable=True)
    timeline_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[BidStatus] = mapped_column(
        enum_column(BidStatus, "bidstatus"),
        default=BidStatus.SUBMITTED,
        nullable=False,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    tender: Mapped["Tender"] = relationship("Tender", back_populates="bids")
    evaluations: Mapped[list["BidEvaluation"]] = relationship(
        "BidEvaluation",
        back_populates="bid",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "uq_bids_one_accepted_per_tender",
            "tender_id",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
            sqlite_where=text("status = 'accepted'"),
        ),
        Index("ix_bids_tender_status", "tender_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Bid(id={self.id}, tender_id={self.tender_id}, status={self.status})>"

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_BID_STATUSES


class BidEvaluation(BaseModel):
    """
    Scored evaluation of a bid by one evaluator.

    Append-only; each evaluator scores a bid at most once.
    """

    __tablename__ = "bid_evaluations"

    bid_id: Mapped[int] = mapped_column(
        ForeignKey("bids.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    evaluator_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)

    # Scores 0-100
    technical_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    financial_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    experience_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    total_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    evaluation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendation: Mapped[Recommendation | None] = mapped_column(
        enum_column(Recommendation, "recommendation"),
        nullable=True,
    )

    # Relationships
    bid: Mapped["Bid"] = relationship("Bid", back_populates="evaluations")

    __table_args__ = (
        UniqueConstraint("bid_id", "evaluator_id", name="uq_bid_evaluations_bid_evaluator"),
    )

    def __repr__(self) -> str:
        return f"<BidEvaluation(id={self.id}, bid_id={self.bid_id}, total={self.total_score})>"
