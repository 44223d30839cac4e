"""
Fetch Job Database Store.

Provides database operations for the fetch job scheduler:
- Job creation and lookup
- Due-job polling for the scheduler
- Conditional status updates
- Per-category progress checkpoints
- Stuck job recovery

Uses Supabase/PostgreSQL for persistence with the fetch_jobs table.
Calls go through the synchronous supabase-py client and block the event
loop for the length of each round trip.
Read failures in the polling path and failed status writes are raised as
DatabaseTransientError; the scheduler logs them and moves on. Activity and
progress checkpoints only log a warning.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional

from supabase import Client

from supplier_sync.core.config import settings
from supplier_sync.core.constants.jobs import (
    FETCH_JOBS_TABLE,
    JOB_TYPE_CATEGORY_FETCH,
    JOB_TYPE_FULL_FETCH,
    PRODUCT_CATEGORIES,
)
from supplier_sync.core.exceptions import DatabaseTransientError
from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.schemas.jobs import ACTIVE_STATUSES, DISPATCHABLE_STATUSES, FetchJob, JobStatus

logger = logging.getLogger("fetch_job_store")


class FetchJobStore:
    """Database operations for fetch jobs."""

    def __init__(self, supabase_client: Optional[SupabaseClient] = None):
        """
        Initialize the fetch job store.

        Args:
            supabase_client: Optional SupabaseClient instance (will create default if not provided)
        """
        self._supabase_client = supabase_client

    @property
    def client(self) -> Client:
        """Get or create Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = SupabaseClient(settings)
        return self._supabase_client.client

    def create_job(
        self,
        categories: List[str],
        triggered_by: str = "manual",
        max_retries: int = 5,
    ) -> FetchJob:
        """
        Insert a new pending job.

        Args:
            categories: Ordered categories to fetch
            triggered_by: 'manual', 'scheduled' or 'retry'
            max_retries: Retry budget for this job

        Returns:
            Created job
        """
        job_type = (
            JOB_TYPE_FULL_FETCH
            if set(categories) == set(PRODUCT_CATEGORIES)
            else JOB_TYPE_CATEGORY_FETCH
        )
        data = {
            "job_type": job_type,
            "categories": categories,
            "status": JobStatus.PENDING.value,
            "total_categories": len(categories),
            "completed_categories": 0,
            "retry_count": 0,
            "max_retries": max_retries,
            "triggered_by": triggered_by,
        }

        try:
            result = self.client.table(FETCH_JOBS_TABLE).insert(data).execute()
        except Exception as e:
            logger.error(f"Error creating fetch job: {e}")
            raise DatabaseTransientError(f"Failed to create fetch job: {e}") from e

        if not result.data:
            raise DatabaseTransientError("Failed to create fetch job: no row returned")

        job = FetchJob.from_row(result.data[0])
        logger.info(f"Created fetch job {job.id}: categories={categories}, triggered_by={triggered_by}")
        return job

    def get_job(self, job_id: int) -> Optional[FetchJob]:
        """
        Get a job by id.

        Returns:
            FetchJob or None if it does not exist

        Raises:
            DatabaseTransientError: if the read fails
        """
        try:
            result = self.client.table(FETCH_JOBS_TABLE) \
                .select("*") \
                .eq("id", job_id) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Error reading fetch job {job_id}: {e}")
            raise DatabaseTransientError(f"Failed to read fetch job {job_id}: {e}") from e

        if not result.data:
            return None
        return FetchJob.from_row(result.data[0])

    def get_status(self, job_id: int) -> Optional[JobStatus]:
        """Get only the status column of a job."""
        try:
            result = self.client.table(FETCH_JOBS_TABLE) \
                .select("status") \
                .eq("id", job_id) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Error reading status of fetch job {job_id}: {e}")
            raise DatabaseTransientError(f"Failed to read fetch job {job_id}: {e}") from e

        if not result.data:
            return None
        return JobStatus(result.data[0]["status"])

    def get_active_job(self) -> Optional[FetchJob]:
        """Get the most recent pending, running or rate limited job."""
        try:
            result = self.client.table(FETCH_JOBS_TABLE) \
                .select("*") \
                .in_("status", [s.value for s in ACTIVE_STATUSES]) \
                .order("created_at", desc=True) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Error getting active fetch job: {e}")
            raise DatabaseTransientError(f"Failed to read active fetch job: {e}") from e

        if not result.data:
            return None
        return FetchJob.from_row(result.data[0])

    def list_jobs(self, limit: int = 10) -> List[FetchJob]:
        """Get the most recent jobs, newest first."""
        try:
            result = self.client.table(FETCH_JOBS_TABLE) \
                .select("*") \
                .order("created_at", desc=True) \
                .limit(limit) \
                .execute()
            return [FetchJob.from_row(row) for row in result.data or []]
        except Exception as e:
            logger.error(f"Error listing fetch jobs: {e}")
            return []

    def get_due_job_ids(self, now: datetime, limit: int = 50) -> List[int]:
        """
        Get ids of jobs the scheduler should dispatch now.

        A job is due if:
        - Status is 'pending' or 'rate_limited'
        - retry_after is NULL or <= now
        - retry_count < max_retries

        PostgREST cannot compare two columns, so the retry budget check is
        applied to the fetched rows.

        Args:
            now: Current time (timezone aware)
            limit: Maximum jobs to return

        Returns:
            Job ids ordered by due time ascending (never-deferred jobs first)
        """
        try:
            result = self.client.table(FETCH_JOBS_TABLE) \
                .select("id, status, retry_after, retry_count, max_retries, created_at") \
                .in_("status", [s.value for s in DISPATCHABLE_STATUSES]) \
                .or_(f"retry_after.is.null,retry_after.lte.{now.isoformat()}") \
                .order("retry_after", desc=False, nullsfirst=True) \
                .order("created_at", desc=False) \
                .limit(limit) \
                .execute()
        except Exception as e:
            logger.error(f"Error polling due fetch jobs: {e}")
            raise DatabaseTransientError(f"Failed to poll due fetch jobs: {e}") from e

        return [
            row["id"]
            for row in result.data or []
            if (row.get("retry_count") or 0) < (row.get("max_retries") or 0)
        ]

    def update_job(self, job: FetchJob, expected_status: Optional[JobStatus] = None) -> bool:
        """
        Persist a job snapshot.

        Args:
            job: Job snapshot to write
            expected_status: If given, only update when the stored status still
                matches (guards against a concurrent transition)

        Returns:
            True if a row was updated

        Raises:
            DatabaseTransientError: Re-raises database errors so the caller can skip the job
        """
        try:
            query = self.client.table(FETCH_JOBS_TABLE) \
                .update(job.to_row()) \
                .eq("id", job.id)
            if expected_status is not None:
                query = query.eq("status", expected_status.value)
            result = query.execute()
        except Exception as e:
            logger.error(f"CRITICAL: Failed to update fetch job {job.id}: {e}")
            raise DatabaseTransientError(f"Failed to update fetch job {job.id}: {e}") from e

        updated = bool(result.data)
        if not updated:
            logger.warning(
                f"No rows updated for fetch job {job.id} "
                f"(expected_status={expected_status.value if expected_status else None})"
            )
        return updated

    def touch_activity(self, job_id: int, current_category: Optional[str] = None) -> None:
        """Record liveness and the category being worked on."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            self.client.table(FETCH_JOBS_TABLE) \
                .update({
                    "current_category": current_category,
                    "last_activity_at": now,
                    "updated_at": now,
                }) \
                .eq("id", job_id) \
                .execute()
        except Exception as e:
            logger.warning(f"Could not record activity for fetch job {job_id}: {e}")

    def save_progress(self, job_id: int, counters: Dict[str, int]) -> bool:
        """
        Checkpoint the category cursor and product counters of a running job.

        Only the counter columns are written, and only while the job is still
        running, so a cancellation is never overwritten.

        Returns:
            True if the checkpoint was stored
        """
        now = datetime.now(timezone.utc).isoformat()
        try:
            result = self.client.table(FETCH_JOBS_TABLE) \
                .update({**counters, "last_activity_at": now, "updated_at": now}) \
                .eq("id", job_id) \
                .eq("status", JobStatus.RUNNING.value) \
                .execute()
        except Exception as e:
            logger.warning(f"Could not checkpoint fetch job {job_id}: {e}")
            return False
        return bool(result.data)

    def reset_stuck_jobs(self, stuck_threshold_minutes: int = 30, now: Optional[datetime] = None) -> int:
        """
        Reset jobs stuck in 'running' back to pending.

        Jobs left running with no activity for too long indicate a crashed
        process; they would otherwise never be dispatched again.

        Args:
            stuck_threshold_minutes: Minutes without activity before considering stuck
            now: Current time (defaults to the wall clock)

        Returns:
            Number of jobs reset
        """
        try:
            now = now or datetime.now(timezone.utc)
            threshold = now - timedelta(minutes=stuck_threshold_minutes)

            result = self.client.table(FETCH_JOBS_TABLE) \
                .update({
                    "status": JobStatus.PENDING.value,
                    "retry_after": None,
                    "current_category": None,
                    "updated_at": now.isoformat(),
                }) \
                .eq("status", JobStatus.RUNNING.value) \
                .lt("last_activity_at", threshold.isoformat()) \
                .execute()

            count = len(result.data) if result.data else 0
            if count > 0:
                logger.info(f"Reset {count} stuck fetch jobs to pending")
            return count

        except Exception as e:
            logger.error(f"Error resetting stuck fetch jobs: {e}")
            return 0
