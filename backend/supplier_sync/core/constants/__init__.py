"""
Constants package — re-exports from domain-specific modules.

Usage:
    from supplier_sync.core.constants.rate_limit import ESTIMATED_COSTS
    # or import everything:
    from supplier_sync.core.constants import jobs, rate_limit
"""

from supplier_sync.core.constants import jobs, rate_limit
from supplier_sync.core.constants.rate_limit import (
    DEFAULT_MAX_COST,
    DEFAULT_RESTORE_RATE,
    DEFAULT_SAFETY_MARGIN,
    ESTIMATED_COSTS,
)
from supplier_sync.core.constants.jobs import (
    PRODUCT_CATEGORIES,
    JOB_TYPE_FULL_FETCH,
    JOB_TYPE_CATEGORY_FETCH,
    FETCH_JOBS_TABLE,
    SUPPLIER_PRODUCTS_TABLE,
    SUPPLIER_PRODUCT_HISTORY_TABLE,
    TRANSIENT_BACKOFF_BASE_SECONDS,
    TRANSIENT_BACKOFF_MAX_SECONDS,
)

__all__ = [
    "jobs",
    "rate_limit",
    "DEFAULT_MAX_COST",
    "DEFAULT_RESTORE_RATE",
    "DEFAULT_SAFETY_MARGIN",
    "ESTIMATED_COSTS",
    "PRODUCT_CATEGORIES",
    "JOB_TYPE_FULL_FETCH",
    "JOB_TYPE_CATEGORY_FETCH",
    "FETCH_JOBS_TABLE",
    "SUPPLIER_PRODUCTS_TABLE",
    "SUPPLIER_PRODUCT_HISTORY_TABLE",
    "TRANSIENT_BACKOFF_BASE_SECONDS",
    "TRANSIENT_BACKOFF_MAX_SECONDS",
]
