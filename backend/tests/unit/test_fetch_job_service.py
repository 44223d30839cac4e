"""
Unit tests for FetchJobService — job creation, progress, history, cancel.
Version: 1.0.0
"""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from supplier_sync.core.exceptions import (
    ActiveJobExistsError,
    InvalidJobStateError,
    JobNotFoundError,
    ValidationError,
)
from supplier_sync.schemas.jobs import JobStatus
from supplier_sync.services.fetch_job_service import FetchJobService, to_progress


@pytest.fixture
def job_store(make_job):
    store = MagicMock()
    store.get_active_job.return_value = None
    store.create_job.side_effect = lambda categories, triggered_by, max_retries: make_job(
        id=21, categories=categories, total_categories=len(categories), max_retries=max_retries,
    )
    store.update_job.return_value = True
    return store


@pytest.fixture
def service(job_store):
    return FetchJobService(job_store, default_max_retries=5)


@pytest.mark.unit
class TestCreateJob:

    def test_defaults_to_all_categories(self, service, job_store):
        job = service.create_job()

        job_store.create_job.assert_called_once_with(
            ["tire", "rim", "battery"], triggered_by="manual", max_retries=5,
        )
        assert job.id == 21

    def test_custom_categories_and_budget(self, service, job_store):
        job = service.create_job(categories=["rim"], max_retries=2)

        assert job.categories == ["rim"]
        assert job.max_retries == 2

    def test_rejects_second_active_job(self, service, job_store, make_job):
        job_store.get_active_job.return_value = make_job(id=3, status=JobStatus.RATE_LIMITED)

        with pytest.raises(ActiveJobExistsError) as exc_info:
            service.create_job()
        assert exc_info.value.active_job_id == 3
        job_store.create_job.assert_not_called()

    @pytest.mark.parametrize("kwargs", [
        {"categories": ["tire", "wheel"]},
        {"categories": ["tire", "tire"]},
        {"triggered_by": "cron"},
        {"max_retries": 0},
    ])
    def test_rejects_invalid_input(self, service, kwargs):
        with pytest.raises(ValidationError):
            service.create_job(**kwargs)


@pytest.mark.unit
class TestProgress:

    def test_progress_view(self, make_job, now):
        job = make_job(
            status=JobStatus.RATE_LIMITED,
            completed_categories=2,
            retry_count=1,
            retry_after=now + timedelta(seconds=30),
        )

        progress = to_progress(job, now)

        assert progress.progress_percent == 67
        assert progress.seconds_until_retry == 30
        assert progress.status == JobStatus.RATE_LIMITED

    def test_get_job_progress_missing(self, service, job_store):
        job_store.get_job.return_value = None
        with pytest.raises(JobNotFoundError):
            service.get_job_progress(5)

    def test_get_active_job_none(self, service):
        assert service.get_active_job() is None

    def test_history(self, service, job_store, make_job):
        job_store.list_jobs.return_value = [make_job(id=2), make_job(id=1)]

        history = service.get_job_history(limit=2)

        job_store.list_jobs.assert_called_once_with(limit=2)
        assert [p.id for p in history] == [2, 1]


@pytest.mark.unit
class TestCancel:

    def test_cancels_pending_job(self, service, job_store, make_job):
        job_store.get_job.return_value = make_job(id=4)

        cancelled = service.cancel_job(4)

        assert cancelled.status == JobStatus.CANCELLED
        saved, = job_store.update_job.call_args[0]
        assert saved.status == JobStatus.CANCELLED
        assert job_store.update_job.call_args[1] == {"expected_status": JobStatus.PENDING}

    def test_missing_job(self, service, job_store):
        job_store.get_job.return_value = None
        with pytest.raises(JobNotFoundError):
            service.cancel_job(4)

    def test_terminal_job(self, service, job_store, make_job):
        job_store.get_job.return_value = make_job(id=4, status=JobStatus.COMPLETED)
        with pytest.raises(InvalidJobStateError):
            service.cancel_job(4)

    def test_retries_against_fresh_row_when_status_moved(self, service, job_store, make_job):
        job_store.get_job.side_effect = [
            make_job(id=4, status=JobStatus.PENDING),
            make_job(id=4, status=JobStatus.RUNNING),
        ]
        job_store.update_job.side_effect = [False, True]

        cancelled = service.cancel_job(4)

        assert cancelled.status == JobStatus.CANCELLED
        assert job_store.update_job.call_args[1] == {"expected_status": JobStatus.RUNNING}

    def test_fresh_row_already_terminal(self, service, job_store, make_job):
        job_store.get_job.side_effect = [
            make_job(id=4, status=JobStatus.RUNNING),
            make_job(id=4, status=JobStatus.COMPLETED),
        ]
        job_store.update_job.return_value = False

        with pytest.raises(InvalidJobStateError):
            service.cancel_job(4)
