"""
Pytest configuration and shared fixtures for Supplier Sync tests.

Provides settings, mocked Supabase clients, controllable clocks, and
job snapshot factories.
Version: 1.0.0
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from supplier_sync.schemas.jobs import FetchJob, JobStatus


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_settings():
    """Settings object with test defaults (no real credentials)."""
    from supplier_sync.core.config import Settings
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-supabase-key",
        supplier_api_url="https://supplier.test/api/products",
        supplier_customer_id="CUST-1",
        supplier_api_key="test-api-key",
        supplier_category_ids={"tire": "10", "rim": "20", "battery": "30"},
        supplier_batch_size=100,
        supplier_http_timeout=5.0,
        supplier_default_retry_after=60,
        supplier_transport_retries=0,
        rate_limit_max_cost=2000,
        rate_limit_restore_rate=100,
        rate_limit_safety_margin=100,
        job_check_interval_ms=30000,
        job_max_retries=5,
        job_stuck_threshold_minutes=30,
        job_poll_limit=50,
    )


# ---------------------------------------------------------------------------
# Supabase (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_table():
    """Build a chained mock table builder for Supabase."""
    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.upsert.return_value = mock_table
    mock_table.update.return_value = mock_table
    mock_table.delete.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.in_.return_value = mock_table
    mock_table.or_.return_value = mock_table
    mock_table.lt.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.order.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])
    return mock_table


@pytest.fixture
def mock_supabase_client(mock_supabase_table):
    """Mocked SupabaseClient whose table() returns the chained builder."""
    client = MagicMock()
    client.client.table.return_value = mock_supabase_table
    return client


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

class FakeClock:
    """Wall clock in epoch seconds with an async sleep that advances it."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeDateTimeClock:
    """Timezone-aware datetime clock for scheduler and state machine tests."""

    def __init__(self, start: datetime = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_datetime_clock():
    return FakeDateTimeClock()


@pytest.fixture
def now():
    return datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

def build_job(**overrides) -> FetchJob:
    """FetchJob snapshot with sensible defaults for a fresh full fetch."""
    data = {
        "id": 1,
        "job_type": "full_fetch",
        "categories": ["tire", "rim", "battery"],
        "status": JobStatus.PENDING,
        "total_categories": 3,
        "completed_categories": 0,
        "retry_count": 0,
        "max_retries": 5,
        "triggered_by": "manual",
    }
    data.update(overrides)
    return FetchJob(**data)


@pytest.fixture
def make_job():
    """Factory fixture for FetchJob snapshots."""
    return build_job


@pytest.fixture
def sample_job_row():
    """A fetch_jobs row as returned by Supabase."""
    return {
        "id": 7,
        "job_type": "full_fetch",
        "categories": ["tire", "rim", "battery"],
        "status": "rate_limited",
        "total_categories": 3,
        "completed_categories": 1,
        "current_category": None,
        "products_fetched": 120,
        "products_created": 100,
        "products_updated": 15,
        "products_unchanged": 5,
        "retry_count": 1,
        "max_retries": 5,
        "retry_after": "2026-01-15T12:01:00+00:00",
        "rate_limit_category": "rim",
        "rate_limit_wait_seconds": 60,
        "started_at": "2026-01-15T11:58:00+00:00",
        "finished_at": None,
        "last_activity_at": "2026-01-15T12:00:00+00:00",
        "error_message": "Supplier API rate limited. Retry after 60s",
        "triggered_by": "manual",
        "created_at": "2026-01-15T11:57:00+00:00",
        "updated_at": "2026-01-15T12:00:00+00:00",
    }


class InMemoryJobStore:
    """FetchJobStore stand-in keeping job snapshots in a dict."""

    def __init__(self, jobs=()):
        self.jobs = {job.id: job for job in jobs}
        self.updates = []

    def add(self, job: FetchJob) -> FetchJob:
        self.jobs[job.id] = job
        return job

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def get_status(self, job_id):
        job = self.jobs.get(job_id)
        return job.status if job else None

    def get_due_job_ids(self, now, limit=50):
        due = [
            job for job in self.jobs.values()
            if job.status in (JobStatus.PENDING, JobStatus.RATE_LIMITED)
            and (job.retry_after is None or job.retry_after <= now)
            and job.retry_count < job.max_retries
        ]
        due.sort(key=lambda j: (j.retry_after is not None, j.retry_after or now, j.id))
        return [job.id for job in due[:limit]]

    def update_job(self, job, expected_status=None):
        current = self.jobs.get(job.id)
        if current is None:
            return False
        if expected_status is not None and current.status != expected_status:
            return False
        self.jobs[job.id] = job
        self.updates.append(job)
        return True

    def touch_activity(self, job_id, current_category=None):
        job = self.jobs.get(job_id)
        if job is not None:
            self.jobs[job_id] = job.model_copy(update={"current_category": current_category})

    def save_progress(self, job_id, counters):
        job = self.jobs.get(job_id)
        if job is None or job.status != JobStatus.RUNNING:
            return False
        self.jobs[job_id] = job.model_copy(update=counters)
        return True

    def reset_stuck_jobs(self, stuck_threshold_minutes=30, now=None):
        now = now or datetime.now(timezone.utc)
        threshold = now - timedelta(minutes=stuck_threshold_minutes)
        stuck = [
            job for job in self.jobs.values()
            if job.status == JobStatus.RUNNING
            and job.last_activity_at is not None
            and job.last_activity_at < threshold
        ]
        for job in stuck:
            self.jobs[job.id] = job.model_copy(update={
                "status": JobStatus.PENDING,
                "retry_after": None,
                "current_category": None,
            })
        return len(stuck)


@pytest.fixture
def memory_job_store():
    return InMemoryJobStore()
