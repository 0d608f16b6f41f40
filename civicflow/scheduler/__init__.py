"""Scheduler jobs module."""

from .jobs import deliver_notifications_job, get_queue_counts

__all__ = [
    "deliver_notifications_job",
    "get_queue_counts",
]
