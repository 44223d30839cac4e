"""
Job scheduler — periodic dispatch of due fetch jobs.

Each tick:
1. Return jobs left running past the stuck threshold to pending
2. Query the store for due job ids (pending, or rate_limited past retry_after)
3. For each job, in order: re-check eligibility, move it to running,
   run the executor, apply the outcome and persist it
4. Return a summary of what happened

Jobs are processed one at a time; a failure in one job is logged and the
tick moves on to the next. The scheduler is the only writer of job status.
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from supplier_sync.db.fetch_job_store import FetchJobStore
from supplier_sync.schemas.jobs import JobStatus
from supplier_sync.schemas.outcomes import Failure, JobOutcome
from supplier_sync.services.fetch_job_executor import FetchJobExecutor
from supplier_sync.utils.job_state_machine import apply_outcome, start_attempt
from supplier_sync.utils.repeating_task import RepeatingTask
from supplier_sync.utils.retry_gate import is_due_for_dispatch

logger = logging.getLogger("job_scheduler")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobScheduler:
    def __init__(
        self,
        job_store: FetchJobStore,
        executor: FetchJobExecutor,
        check_interval_ms: int = 30000,
        poll_limit: int = 50,
        stuck_threshold_minutes: int = 30,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = job_store
        self._executor = executor
        self._check_interval_ms = check_interval_ms
        self._poll_limit = poll_limit
        self._stuck_threshold_minutes = stuck_threshold_minutes
        self._clock = clock
        self._task = RepeatingTask(
            self.check_and_process_jobs,
            interval_seconds=check_interval_ms / 1000,
            name="job-scheduler",
        )
        self._last_tick_at: Optional[datetime] = None
        self._ticks = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task.is_running

    def start(self) -> bool:
        """Run one tick immediately, then every check_interval_ms."""
        if self._task.is_running:
            logger.info("Job scheduler already running")
            return False
        self._task.start()
        logger.info(f"Job scheduler started (interval={self._check_interval_ms}ms)")
        return True

    async def stop(self) -> None:
        """Stop after the current tick. Safe to call when not running."""
        if not self._task.is_running:
            return
        await self._task.stop()
        logger.info("Job scheduler stopped")

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "check_interval_ms": self._check_interval_ms,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "ticks": self._ticks,
        }

    def recover_stuck_jobs(self, threshold_minutes: Optional[int] = None) -> int:
        """Return jobs left running with no recent activity to pending."""
        reset = self._store.reset_stuck_jobs(
            stuck_threshold_minutes=threshold_minutes or self._stuck_threshold_minutes,
            now=self._clock(),
        )
        if reset > 0:
            logger.warning(f"Recovered {reset} stuck fetch jobs")
        return reset

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def check_and_process_jobs(self) -> Dict[str, Any]:
        """
        One scheduler tick.

        Returns:
            Summary with the number of jobs found and their results
        """
        now = self._clock()
        self._ticks += 1
        self._last_tick_at = now

        summary: Dict[str, Any] = {
            "status": "completed",
            "found": 0,
            "completed": 0,
            "rate_limited": 0,
            "failed": 0,
            "skipped": 0,
            "errors": 0,
        }

        # Jobs stranded in running by a failed outcome write or a crash
        summary["recovered"] = self.recover_stuck_jobs()

        try:
            job_ids = self._store.get_due_job_ids(now, limit=self._poll_limit)
        except Exception as e:
            logger.error(f"Failed to query due jobs: {e}")
            summary["status"] = "error"
            return summary

        summary["found"] = len(job_ids)
        if not job_ids:
            logger.debug("No due fetch jobs")
            return summary

        logger.info(f"Found {len(job_ids)} due fetch jobs")

        for job_id in job_ids:
            try:
                result = await self._process_job(job_id)
            except Exception as e:
                logger.error(f"Error processing fetch job {job_id}: {e}")
                summary["errors"] += 1
                continue
            summary[result] = summary.get(result, 0) + 1

        logger.info(
            f"Tick done: completed={summary['completed']} rate_limited={summary['rate_limited']} "
            f"failed={summary['failed']} skipped={summary['skipped']} errors={summary['errors']}"
        )
        return summary

    async def _process_job(self, job_id: int) -> str:
        job = self._store.get_job(job_id)
        if job is None:
            logger.warning(f"Fetch job {job_id} disappeared before dispatch")
            return "skipped"

        now = self._clock()
        if not is_due_for_dispatch(job, now):
            logger.debug(f"Fetch job {job_id} not due (status={job.status.value})")
            return "skipped"

        running = start_attempt(job, now)
        if not self._store.update_job(running, expected_status=job.status):
            logger.info(f"Fetch job {job_id} changed status before dispatch, skipping")
            return "skipped"

        logger.info(
            f"Dispatching fetch job {job_id} (attempt {job.retry_count + 1}/{job.max_retries})"
        )

        outcome: JobOutcome
        try:
            outcome = await self._executor.execute(job_id)
        except Exception as e:
            logger.error(f"Executor crashed on fetch job {job_id}: {e}")
            outcome = Failure(message=f"Executor error: {e}")

        current = self._store.get_job(job_id)
        if current is None:
            logger.warning(f"Fetch job {job_id} disappeared during execution")
            return "skipped"
        if current.status != JobStatus.RUNNING:
            # Cancelled while running; the terminal state stands
            logger.info(f"Fetch job {job_id} is {current.status.value}, outcome discarded")
            return "skipped"

        final = apply_outcome(current, outcome, self._clock())
        if not self._store.update_job(final, expected_status=JobStatus.RUNNING):
            logger.info(f"Fetch job {job_id} changed status before its outcome was saved")
            return "skipped"
        return final.status.value
