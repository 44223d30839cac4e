"""
Unit tests for retry gate predicates.

Tests cover:
- is_eligible_for_retry against retry_after boundaries
- retry budget exhaustion
- non-dispatchable statuses
- first attempts (pending, never deferred) via is_due_for_dispatch

Version: 1.0.0
"""
from datetime import timedelta

import pytest

from supplier_sync.schemas.jobs import JobStatus
from supplier_sync.utils.retry_gate import (
    is_due_for_dispatch,
    is_eligible_for_retry,
    is_first_attempt,
)


@pytest.mark.unit
class TestIsEligibleForRetry:

    def test_false_when_retry_after_in_future(self, make_job, now):
        job = make_job(
            status=JobStatus.RATE_LIMITED,
            retry_after=now + timedelta(microseconds=1),
            retry_count=1,
        )
        assert is_eligible_for_retry(job, now) is False

    def test_true_at_exact_retry_after(self, make_job, now):
        job = make_job(status=JobStatus.RATE_LIMITED, retry_after=now, retry_count=1)
        assert is_eligible_for_retry(job, now) is True

    def test_true_after_retry_after(self, make_job, now):
        job = make_job(
            status=JobStatus.RATE_LIMITED,
            retry_after=now - timedelta(seconds=5),
            retry_count=1,
        )
        assert is_eligible_for_retry(job, now) is True

    def test_pending_with_due_retry_after_is_eligible(self, make_job, now):
        job = make_job(status=JobStatus.PENDING, retry_after=now - timedelta(seconds=1))
        assert is_eligible_for_retry(job, now) is True

    def test_false_when_budget_exhausted(self, make_job, now):
        job = make_job(
            status=JobStatus.RATE_LIMITED, retry_after=now, retry_count=5, max_retries=5,
        )
        assert is_eligible_for_retry(job, now) is False

    def test_false_without_retry_after(self, make_job, now):
        job = make_job(status=JobStatus.RATE_LIMITED, retry_after=None)
        assert is_eligible_for_retry(job, now) is False

    @pytest.mark.parametrize("status", [
        JobStatus.RUNNING, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED,
    ])
    def test_false_for_other_statuses(self, make_job, now, status):
        job = make_job(status=status, retry_after=now - timedelta(seconds=1))
        assert is_eligible_for_retry(job, now) is False


@pytest.mark.unit
class TestDueForDispatch:

    def test_fresh_pending_job_is_first_attempt(self, make_job, now):
        job = make_job()
        assert is_first_attempt(job) is True
        assert is_due_for_dispatch(job, now) is True

    def test_deferred_job_not_due_before_retry_after(self, make_job, now):
        job = make_job(
            status=JobStatus.RATE_LIMITED,
            retry_after=now + timedelta(seconds=60),
            retry_count=1,
        )
        assert is_first_attempt(job) is False
        assert is_due_for_dispatch(job, now) is False

    def test_running_job_never_due(self, make_job, now):
        assert is_due_for_dispatch(make_job(status=JobStatus.RUNNING), now) is False
