"""Admin API endpoints: scheduler control and notification outbox."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_platform_admin
from civicflow.db import get_db
from civicflow.models import NotificationEvent, NotificationStatus
from civicflow.scheduler.job_stats import job_stats
from civicflow.schemas import NotificationResponse
from civicflow.services.notification_service import notification_service
from civicflow.services.transports import get_transport

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_platform_admin)])


# ============== Scheduler Control Endpoints ==============

# Global scheduler reference (set from main.py)
_scheduler = None
_scheduler_paused = False  # Track paused state separately (APScheduler quirk)


def set_scheduler(scheduler):
    """Set scheduler reference for control endpoints."""
    global _scheduler, _scheduler_paused
    _scheduler = scheduler
    _scheduler_paused = False


async def _outbox_counts(db: AsyncSession) -> dict[str, int]:
    result = await db.execute(
        select(NotificationEvent.status, func.count(NotificationEvent.id))
        .group_by(NotificationEvent.status)
    )
    return {str(status.value): count for status, count in result.all()}


@router.get("/scheduler")
async def get_scheduler_status(db: AsyncSession = Depends(get_db)):
    """Get scheduler status, jobs with run stats, and outbox sizes."""
    if _scheduler is None:
        return {"error": "Scheduler not initialized"}

    jobs = []
    for job in _scheduler.get_jobs():
        job_data = {
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger),
        }
        stats = job_stats.to_dict(job.id)
        if stats:
            job_data["stats"] = stats.get("last_run")
            job_data["total_runs"] = stats.get("total_runs", 0)
            job_data["total_processed"] = stats.get("total_processed", 0)
            job_data["consecutive_failures"] = stats.get("consecutive_failures", 0)
        jobs.append(job_data)

    return {
        "running": not _scheduler_paused,
        "paused": _scheduler_paused,
        "jobs": jobs,
        "outbox": await _outbox_counts(db),
    }


@router.post("/scheduler/pause")
async def pause_scheduler():
    """Pause all scheduler jobs."""
    global _scheduler_paused

    if _scheduler is None:
        return {"error": "Scheduler not initialized"}

    if not _scheduler_paused:
        _scheduler.pause()
        _scheduler_paused = True
        logger.info("Scheduler paused via API")

    return {"status": "paused", "running": False}


@router.post("/scheduler/resume")
async def resume_scheduler():
    """Resume scheduler jobs."""
    global _scheduler_paused

    if _scheduler is None:
        return {"error": "Scheduler not initialized"}

    if _scheduler_paused:
        _scheduler.resume()
        _scheduler_paused = False
        logger.info("Scheduler resumed via API")

    return {"status": "running", "running": True}


@router.get("/jobs")
async def get_job_stats():
    """Run statistics of every tracked job."""
    return {"jobs": job_stats.snapshot()}


# ============== Notification Outbox Endpoints ==============


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    status: NotificationStatus | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """List outbox events, newest first."""
    query = select(NotificationEvent)
    if status is not None:
        query = query.where(NotificationEvent.status == status)
    result = await db.execute(
        query.order_by(NotificationEvent.created_at.desc(), NotificationEvent.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


@router.post("/notifications/deliver")
async def trigger_delivery(db: AsyncSession = Depends(get_db)):
    """Deliver pending notifications now instead of waiting for the job."""
    transport = get_transport()
    sent = await notification_service.deliver_pending(db, transport)
    logger.info(f"Manual notification delivery: {sent} sent via {transport.name}")
    return {"status": "completed", "sent": sent, "transport": transport.name}
