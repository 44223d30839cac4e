"""
Fetch job schemas — job record, status enum, and progress view.

FetchJob mirrors one row of the fetch_jobs table. Instances are treated as
immutable snapshots: state transitions return new copies
(see utils/job_state_machine.py).
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RUNNING, JobStatus.RATE_LIMITED})
DISPATCHABLE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RATE_LIMITED})

# Columns owned by the database, never written back
_READ_ONLY_COLUMNS = {"id", "created_at"}


class FetchJob(BaseModel):
    """One ingestion job."""
    id: int
    job_type: str = "full_fetch"
    categories: List[str] = Field(default_factory=list)
    status: JobStatus = JobStatus.PENDING

    # Progress
    total_categories: int = 0
    completed_categories: int = 0
    current_category: Optional[str] = None
    products_fetched: int = 0
    products_created: int = 0
    products_updated: int = 0
    products_unchanged: int = 0

    # Retry bookkeeping
    retry_count: int = 0
    max_retries: int = 5
    retry_after: Optional[datetime] = None
    rate_limit_category: Optional[str] = None
    rate_limit_wait_seconds: Optional[int] = None

    # Lifecycle
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    error_message: Optional[str] = None
    triggered_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "FetchJob":
        """Build from a Supabase row, tolerating NULL counters."""
        cleaned = {k: v for k, v in row.items() if v is not None}
        return cls.model_validate(cleaned)

    def to_row(self) -> Dict[str, Any]:
        """Serialize writable columns for a Supabase update."""
        data = self.model_dump(mode="json")
        for column in _READ_ONLY_COLUMNS:
            data.pop(column, None)
        return data


class FetchJobProgress(BaseModel):
    """Read model for job progress reporting."""
    id: int
    status: JobStatus
    job_type: str
    categories: List[str]

    total_categories: int
    completed_categories: int
    current_category: Optional[str]
    products_fetched: int
    products_created: int
    products_updated: int
    products_unchanged: int
    progress_percent: int

    retry_count: int
    max_retries: int
    retry_after: Optional[datetime]
    rate_limit_category: Optional[str]
    rate_limit_wait_seconds: Optional[int]
    seconds_until_retry: Optional[int]

    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    triggered_by: Optional[str]
    error_message: Optional[str]
    created_at: Optional[datetime]
