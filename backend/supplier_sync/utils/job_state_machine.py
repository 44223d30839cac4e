"""
Job state machine — pure transitions for fetch jobs.

    pending ──dispatch──> running ──Success──────────> completed
    rate_limited ──due──> running ──RateLimited──────> rate_limited | failed (exhausted)
                                  ──Failure(retry)───> rate_limited | failed (exhausted)
                                  ──Failure──────────> failed
    any non-terminal ──cancel──> cancelled

Every function takes a FetchJob snapshot and returns a new one; persisting
the result is the caller's job. Illegal moves raise InvalidJobStateError.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from supplier_sync.core.constants.jobs import (
    CANCELLED_MESSAGE,
    EXHAUSTED_AFTER_RATE_LIMIT_MESSAGE,
    EXHAUSTED_AFTER_TRANSIENT_MESSAGE,
    MAX_ERROR_MESSAGE_LENGTH,
)
from supplier_sync.core.exceptions import InvalidJobStateError
from supplier_sync.schemas.jobs import FetchJob, JobStatus
from supplier_sync.schemas.outcomes import Failure, JobOutcome, RateLimited, Success
from supplier_sync.utils.retry_gate import is_due_for_dispatch
from supplier_sync.utils.retry_utils import calculate_backoff_seconds

logger = logging.getLogger("job_state_machine")


def _truncate(message: str) -> str:
    return message[:MAX_ERROR_MESSAGE_LENGTH]


def start_attempt(job: FetchJob, now: datetime) -> FetchJob:
    """Move a due pending/rate_limited job to running."""
    if not is_due_for_dispatch(job, now):
        raise InvalidJobStateError(job.id, job.status.value, "dispatch")

    return job.model_copy(update={
        "status": JobStatus.RUNNING,
        "started_at": job.started_at or now,
        "last_activity_at": now,
        "retry_after": None,
        "updated_at": now,
    })


def _with_progress(job: FetchJob, outcome: JobOutcome) -> dict:
    """Cumulative counters after adding the outcome's deltas."""
    progress = outcome.progress
    completed = job.completed_categories + outcome.categories_completed
    if job.total_categories:
        completed = min(completed, job.total_categories)
    return {
        "products_fetched": job.products_fetched + progress.fetched,
        "products_created": job.products_created + progress.created,
        "products_updated": job.products_updated + progress.updated,
        "products_unchanged": job.products_unchanged + progress.unchanged,
        "completed_categories": completed,
    }


def _defer_or_exhaust(
    job: FetchJob,
    now: datetime,
    wait_seconds: int,
    exhausted_message: str,
    error_message: str,
    rate_limit_wait_seconds: Optional[int],
    rate_limit_category: Optional[str],
    update: dict,
) -> FetchJob:
    retry_count = job.retry_count + 1
    update["retry_count"] = retry_count
    update["last_activity_at"] = now
    update["updated_at"] = now

    if retry_count >= job.max_retries:
        update.update({
            "status": JobStatus.FAILED,
            "retry_after": None,
            "finished_at": now,
            "error_message": _truncate(f"{exhausted_message}: {error_message}"),
        })
        logger.warning(f"Job {job.id} failed - {exhausted_message} ({retry_count}/{job.max_retries})")
        return job.model_copy(update=update)

    update.update({
        "status": JobStatus.RATE_LIMITED,
        "retry_after": now + timedelta(seconds=wait_seconds),
        "rate_limit_wait_seconds": rate_limit_wait_seconds,
        "rate_limit_category": rate_limit_category,
        "error_message": _truncate(error_message),
    })
    logger.info(
        f"Job {job.id} deferred {wait_seconds}s (attempt {retry_count}/{job.max_retries})"
    )
    return job.model_copy(update=update)


def apply_outcome(job: FetchJob, outcome: JobOutcome, now: datetime) -> FetchJob:
    """
    Apply an executor outcome to a running job.

    Progress deltas are added to the job's counters for every outcome kind,
    so counts accumulate across attempts.
    """
    if job.status != JobStatus.RUNNING:
        raise InvalidJobStateError(job.id, job.status.value, "apply outcome to")
    if not isinstance(outcome, (Success, RateLimited, Failure)):
        raise TypeError(f"Unknown job outcome: {outcome!r}")

    update = _with_progress(job, outcome)

    if isinstance(outcome, Success):
        update.update({
            "status": JobStatus.COMPLETED,
            "retry_after": None,
            "current_category": None,
            "error_message": None,
            "finished_at": now,
            "last_activity_at": now,
            "updated_at": now,
        })
        return job.model_copy(update=update)

    if isinstance(outcome, RateLimited):
        return _defer_or_exhaust(
            job,
            now,
            wait_seconds=outcome.wait_seconds,
            exhausted_message=EXHAUSTED_AFTER_RATE_LIMIT_MESSAGE,
            error_message=f"Supplier API rate limited. Retry after {outcome.wait_seconds}s",
            rate_limit_wait_seconds=outcome.wait_seconds,
            rate_limit_category=outcome.category,
            update=update,
        )

    # Failure
    if outcome.retryable:
        return _defer_or_exhaust(
            job,
            now,
            wait_seconds=calculate_backoff_seconds(job.retry_count + 1),
            exhausted_message=EXHAUSTED_AFTER_TRANSIENT_MESSAGE,
            error_message=outcome.message,
            rate_limit_wait_seconds=None,
            rate_limit_category=None,
            update=update,
        )
    update.update({
        "status": JobStatus.FAILED,
        "retry_after": None,
        "finished_at": now,
        "last_activity_at": now,
        "error_message": _truncate(outcome.message),
        "updated_at": now,
    })
    logger.warning(f"Job {job.id} failed: {outcome.message}")
    return job.model_copy(update=update)


def cancel(job: FetchJob, now: datetime) -> FetchJob:
    """Cancel a job that has not reached a terminal state."""
    if job.is_terminal:
        raise InvalidJobStateError(job.id, job.status.value, "cancel")

    return job.model_copy(update={
        "status": JobStatus.CANCELLED,
        "retry_after": None,
        "finished_at": now,
        "error_message": CANCELLED_MESSAGE,
        "updated_at": now,
    })


def progress_percent(job: FetchJob) -> int:
    if job.total_categories <= 0:
        return 0
    return round(job.completed_categories / job.total_categories * 100)


def seconds_until_retry(job: FetchJob, now: datetime) -> Optional[int]:
    if job.status != JobStatus.RATE_LIMITED or job.retry_after is None:
        return None
    return max(0, math.ceil((job.retry_after - now).total_seconds()))
