"""
Retry gate — pure eligibility predicates for fetch jobs.

No side effects, no storage access: callers pass a job snapshot and the
current time, which keeps these checks testable against synthetic jobs.
"""
from datetime import datetime

from supplier_sync.schemas.jobs import DISPATCHABLE_STATUSES, FetchJob, JobStatus


def is_eligible_for_retry(job: FetchJob, now: datetime) -> bool:
    """
    Check whether a previously deferred job may be retried now.

    A job is eligible when it is rate limited (or pending with a due
    retry_after), retry_after <= now, and retry budget remains.
    """
    if job.status not in DISPATCHABLE_STATUSES:
        return False
    if job.retry_after is None:
        return False
    if job.retry_after > now:
        return False
    return job.retry_count < job.max_retries


def is_first_attempt(job: FetchJob) -> bool:
    """Pending job that has never been deferred."""
    return (
        job.status == JobStatus.PENDING
        and job.retry_after is None
        and job.retry_count < job.max_retries
    )


def is_due_for_dispatch(job: FetchJob, now: datetime) -> bool:
    """Check whether the scheduler should dispatch this job on the current tick."""
    return is_first_attempt(job) or is_eligible_for_retry(job, now)
