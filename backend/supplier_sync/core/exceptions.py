"""
Custom exception hierarchy for Supplier Sync.

Exceptions are categorized as:
- RetryableError: Transient errors; the job is rescheduled with backoff
- NonRetryableError: Permanent errors; the job fails immediately

The fetch job executor maps these onto job outcomes:
- RateLimitError -> RateLimited (wait for the upstream retry-after)
- other RetryableError -> retryable Failure (exponential backoff)
- NonRetryableError -> terminal Failure
"""


class SupplierSyncException(Exception):
    """Base exception for Supplier Sync."""
    pass


# ============================================
# RETRYABLE ERRORS - Job is rescheduled
# ============================================
class RetryableError(SupplierSyncException):
    """
    Base class for errors that should trigger a retry.

    Use this for transient errors where retrying might succeed:
    - Network timeouts
    - Rate limits (with backoff)
    - Temporary service unavailability
    """
    pass


class ExternalAPIError(RetryableError):
    """
    Error from the supplier API (typically 5xx).

    The external service might recover.
    """
    def __init__(self, service: str, message: str, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error: {message}")


class RateLimitError(RetryableError):
    """
    Rate limit exceeded.

    Should retry after the specified delay.
    """
    def __init__(self, service: str, retry_after: int = 60):
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"{service} rate limited. Retry after {retry_after}s")


class ConnectionTimeoutError(RetryableError):
    """Connection or timeout error - typically transient."""
    pass


class DatabaseTransientError(RetryableError):
    """
    Transient database error.

    Raised by the stores when Supabase/PostgREST rejects a read or write.
    """
    pass


# ============================================
# NON-RETRYABLE ERRORS - Fail immediately
# ============================================
class NonRetryableError(SupplierSyncException):
    """
    Base class for errors that should NOT trigger retry.

    Use this for permanent errors where retrying won't help:
    - Malformed upstream payloads
    - Authentication errors (need config fix)
    - Invalid job state transitions
    """
    pass


class ValidationError(NonRetryableError):
    """Invalid input or malformed upstream data - retrying won't help."""
    pass


class AuthenticationError(NonRetryableError):
    """
    Supplier API authentication failed.

    Needs configuration fix, not retry.
    """
    pass


class ConfigurationError(NonRetryableError):
    """Required settings are missing."""
    pass


class JobNotFoundError(NonRetryableError):
    """Fetch job not found - permanent failure."""
    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Fetch job not found: {job_id}")


class InvalidJobStateError(NonRetryableError):
    """Requested transition is not legal from the job's current status."""
    def __init__(self, job_id: int, status: str, action: str):
        self.job_id = job_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} job {job_id} in status '{status}'")


class ActiveJobExistsError(NonRetryableError):
    """Another fetch job is still pending, running or rate limited."""
    def __init__(self, active_job_id: int):
        self.active_job_id = active_job_id
        super().__init__(
            f"An active fetch job already exists (ID: {active_job_id}). "
            "Wait for it to finish or cancel it."
        )
