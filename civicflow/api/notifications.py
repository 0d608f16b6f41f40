"""Notification endpoints for the acting recipient."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor
from civicflow.schemas import NotificationResponse
from civicflow.services.notification_service import notification_service

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_my_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Notifications addressed to the actor, newest first."""
    return await notification_service.list_for_recipient(db, actor.id, skip=skip, limit=limit)
