"""
Fetch job service — job creation, progress reporting, history, cancellation.

Only one job may be active (pending, running or rate limited) at a time.
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from supplier_sync.core.constants.jobs import PRODUCT_CATEGORIES, TRIGGER_SOURCES
from supplier_sync.core.exceptions import (
    ActiveJobExistsError,
    JobNotFoundError,
    ValidationError,
)
from supplier_sync.db.fetch_job_store import FetchJobStore
from supplier_sync.schemas.jobs import FetchJob, FetchJobProgress
from supplier_sync.utils.job_state_machine import cancel, progress_percent, seconds_until_retry

logger = logging.getLogger("fetch_job_service")


def to_progress(job: FetchJob, now: Optional[datetime] = None) -> FetchJobProgress:
    """Build the progress view of a job."""
    now = now or datetime.now(timezone.utc)
    return FetchJobProgress(
        id=job.id,
        status=job.status,
        job_type=job.job_type,
        categories=job.categories,
        total_categories=job.total_categories,
        completed_categories=job.completed_categories,
        current_category=job.current_category,
        products_fetched=job.products_fetched,
        products_created=job.products_created,
        products_updated=job.products_updated,
        products_unchanged=job.products_unchanged,
        progress_percent=progress_percent(job),
        retry_count=job.retry_count,
        max_retries=job.max_retries,
        retry_after=job.retry_after,
        rate_limit_category=job.rate_limit_category,
        rate_limit_wait_seconds=job.rate_limit_wait_seconds,
        seconds_until_retry=seconds_until_retry(job, now),
        started_at=job.started_at,
        finished_at=job.finished_at,
        triggered_by=job.triggered_by,
        error_message=job.error_message,
        created_at=job.created_at,
    )


class FetchJobService:
    def __init__(self, job_store: FetchJobStore, default_max_retries: int = 5) -> None:
        self._store = job_store
        self._default_max_retries = default_max_retries

    def create_job(
        self,
        categories: Optional[List[str]] = None,
        triggered_by: str = "manual",
        max_retries: Optional[int] = None,
    ) -> FetchJob:
        """
        Create a pending fetch job.

        Args:
            categories: Categories to fetch, in order (defaults to all)
            triggered_by: 'manual', 'scheduled' or 'retry'
            max_retries: Retry budget (defaults to JOB_MAX_RETRIES)

        Raises:
            ActiveJobExistsError: another job is pending, running or rate limited
            ValidationError: unknown category, trigger or retry budget
        """
        categories = list(categories or PRODUCT_CATEGORIES)
        unknown = [c for c in categories if c not in PRODUCT_CATEGORIES]
        if unknown:
            raise ValidationError(f"Unknown categories: {unknown}")
        if len(set(categories)) != len(categories):
            raise ValidationError(f"Duplicate categories: {categories}")
        if triggered_by not in TRIGGER_SOURCES:
            raise ValidationError(f"Unknown trigger source: {triggered_by}")

        max_retries = self._default_max_retries if max_retries is None else max_retries
        if max_retries < 1:
            raise ValidationError("max_retries must be at least 1")

        active = self._store.get_active_job()
        if active is not None:
            raise ActiveJobExistsError(active.id)

        return self._store.create_job(
            categories,
            triggered_by=triggered_by,
            max_retries=max_retries,
        )

    def get_job_progress(self, job_id: int) -> FetchJobProgress:
        job = self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return to_progress(job)

    def get_active_job(self) -> Optional[FetchJobProgress]:
        job = self._store.get_active_job()
        return to_progress(job) if job else None

    def get_job_history(self, limit: int = 10) -> List[FetchJobProgress]:
        now = datetime.now(timezone.utc)
        return [to_progress(job, now) for job in self._store.list_jobs(limit=limit)]

    def cancel_job(self, job_id: int) -> FetchJob:
        """
        Cancel a job that has not finished.

        A running job stops before its next category; the scheduler keeps the
        cancelled state when the attempt returns.

        Raises:
            JobNotFoundError: no such job
            InvalidJobStateError: job already completed, failed or cancelled
        """
        job = self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        cancelled = cancel(job, datetime.now(timezone.utc))
        if not self._store.update_job(cancelled, expected_status=job.status):
            # Status moved underneath us; re-check against the fresh row
            fresh = self._store.get_job(job_id)
            if fresh is None:
                raise JobNotFoundError(job_id)
            cancelled = cancel(fresh, datetime.now(timezone.utc))
            self._store.update_job(cancelled, expected_status=fresh.status)

        logger.info(f"Cancelled fetch job {job_id} (was {job.status.value})")
        return cancelled
