"""Notification event model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, enum_column


class NotificationKind(str, Enum):
    """Kind of notification event."""

    BID_ACCEPTED = "bid_accepted"  # To the awarded contractor
    WORK_COMPLETION_SUBMITTED = "work_completion_submitted"  # To department admins


class NotificationStatus(str, Enum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationEvent(BaseModel):
    """
    Notification event produced by a workflow cascade.

    The payload (recipient, kind, text, related entity) is written once in
    the same transaction as the transition that produced it. Delivery
    columns are updated only by the delivery job.
    """

    __tablename__ = "notifications"

    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Payload
    kind: Mapped[NotificationKind] = mapped_column(
        enum_column(NotificationKind, "notificationkind"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[int] = mapped_column(Integer, nullable=False)
    related_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Delivery tracking
    status: Mapped[NotificationStatus] = mapped_column(
        enum_column(NotificationStatus, "notificationstatus"),
        default=NotificationStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        Index("ix_notifications_status_created", "status", "created_at"),
        Index("ix_notifications_related", "related_type", "related_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationEvent(id={self.id}, kind={self.kind}, "
            f"recipient_id={self.recipient_id}, status={self.status})>"
        )
