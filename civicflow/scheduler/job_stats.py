"""Job statistics tracking for scheduler jobs."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRun:
    """Single job run record."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: int = 0
    success: bool = True
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class JobStats:
    """Statistics for a scheduled job."""
    job_id: str
    name: str
    last_run: Optional[JobRun] = None
    total_runs: int = 0
    total_processed: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0
    last_error: Optional[str] = None


class JobStatsTracker:
    """Tracks job execution statistics."""

    def __init__(self):
        self._stats: dict[str, JobStats] = {}

    def register_job(self, job_id: str, name: str):
        """Register a job for tracking."""
        if job_id not in self._stats:
            self._stats[job_id] = JobStats(job_id=job_id, name=name)

    def start_run(self, job_id: str) -> JobRun:
        """Record start of a job run."""
        self.register_job(job_id, job_id)
        run = JobRun(started_at=_now())
        self._stats[job_id].last_run = run
        return run

    def finish_run(self, job_id: str, processed: int = 0, error: Optional[str] = None):
        """Record end of a job run."""
        stats = self._stats.get(job_id)
        if stats is None:
            return

        if stats.last_run:
            stats.last_run.finished_at = _now()
            stats.last_run.processed = processed
            stats.last_run.success = error is None
            stats.last_run.error = error

        stats.total_runs += 1
        stats.total_processed += processed
        if error:
            stats.total_failures += 1
            stats.consecutive_failures += 1
            stats.last_error = error
        else:
            stats.consecutive_failures = 0

    def get_stats(self, job_id: str) -> Optional[JobStats]:
        """Get stats for a specific job."""
        return self._stats.get(job_id)

    def to_dict(self, job_id: str) -> dict:
        """Convert job stats to dict for API."""
        stats = self._stats.get(job_id)
        if not stats:
            return {}

        result = {
            "job_id": stats.job_id,
            "name": stats.name,
            "total_runs": stats.total_runs,
            "total_processed": stats.total_processed,
            "total_failures": stats.total_failures,
            "consecutive_failures": stats.consecutive_failures,
            "last_error": stats.last_error,
            "last_run": None,
        }

        run = stats.last_run
        if run:
            result["last_run"] = {
                "started_at": run.started_at.isoformat(),
                "finished_at": run.finished_at.isoformat() if run.finished_at else None,
                "duration_seconds": run.duration_seconds,
                "processed": run.processed,
                "success": run.success,
                "error": run.error,
            }

        return result

    def snapshot(self) -> list[dict]:
        """All tracked jobs as API dicts."""
        return [self.to_dict(job_id) for job_id in self._stats]


# Global tracker instance
job_stats = JobStatsTracker()
