"""Notification Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from civicflow.models.notification import NotificationKind, NotificationStatus


class NotificationResponse(BaseModel):
    """Notification event as shown to its recipient."""

    id: int
    recipient_id: int
    kind: NotificationKind
    title: str
    message: str
    related_id: int
    related_type: str
    status: NotificationStatus
    attempts: int
    delivered_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
