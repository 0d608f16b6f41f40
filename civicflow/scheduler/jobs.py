"""Scheduled jobs for the notification outbox."""

import logging

from sqlalchemy import func, select

from civicflow.db import get_db_context
from civicflow.models import NotificationEvent
from civicflow.scheduler.job_stats import job_stats
from civicflow.services.notification_service import notification_service
from civicflow.services.transports import get_transport

logger = logging.getLogger(__name__)

# Register jobs for stats tracking
job_stats.register_job("deliver_notifications", "Deliver Notifications")


async def deliver_notifications_job():
    """
    Job: Deliver pending notification events through the configured transport.
    Runs every ``notification_interval_seconds``.
    """
    logger.info("Starting notification delivery job")
    job_stats.start_run("deliver_notifications")
    try:
        async with get_db_context() as db:
            transport = get_transport()
            sent = await notification_service.deliver_pending(db, transport)
            logger.info(f"Notification delivery completed: {sent} notifications sent via {transport.name}")
            job_stats.finish_run("deliver_notifications", processed=sent)
    except Exception as e:
        logger.error(f"Notification delivery job failed: {e}")
        job_stats.finish_run("deliver_notifications", error=str(e))


async def get_queue_counts() -> dict:
    """Get count of notification events in each delivery status."""
    async with get_db_context() as db:
        result = await db.execute(
            select(NotificationEvent.status, func.count(NotificationEvent.id))
            .group_by(NotificationEvent.status)
        )
        counts = {status.value: count for status, count in result.all()}
        return counts
