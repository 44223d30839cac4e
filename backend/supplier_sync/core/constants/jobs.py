"""
Fetch job constants — categories, status groups, backoff and stuck thresholds.
"""

PRODUCT_CATEGORIES: tuple[str, ...] = ("tire", "rim", "battery")

JOB_TYPE_FULL_FETCH: str = "full_fetch"
JOB_TYPE_CATEGORY_FETCH: str = "category_fetch"

TRIGGER_SOURCES: tuple[str, ...] = ("manual", "scheduled", "retry")

FETCH_JOBS_TABLE: str = "fetch_jobs"
SUPPLIER_PRODUCTS_TABLE: str = "supplier_products"
SUPPLIER_PRODUCT_HISTORY_TABLE: str = "supplier_product_history"

# Backoff for transient (non rate-limit) failures
TRANSIENT_BACKOFF_BASE_SECONDS: int = 30
TRANSIENT_BACKOFF_MAX_SECONDS: int = 900

# Truncate stored error messages
MAX_ERROR_MESSAGE_LENGTH: int = 500

EXHAUSTED_AFTER_RATE_LIMIT_MESSAGE: str = "retries exhausted after rate limiting"
EXHAUSTED_AFTER_TRANSIENT_MESSAGE: str = "retries exhausted after transient failures"
CANCELLED_MESSAGE: str = "Cancelled by user"
