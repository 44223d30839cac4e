"""
Lazy DI container — one instance per process of each client, store and service.

The rate limiter and scheduler are built here once and injected; tests
construct their own isolated instances instead of going through these
getters. Import individual getters to avoid circular imports.
Version: 1.0.0
"""

from functools import lru_cache

from supplier_sync.core.config import settings
from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.clients.supplier_client import SupplierClient
from supplier_sync.db.fetch_job_store import FetchJobStore
from supplier_sync.db.supplier_product_store import SupplierProductStore
from supplier_sync.services.fetch_job_executor import FetchJobExecutor
from supplier_sync.services.fetch_job_service import FetchJobService
from supplier_sync.services.job_scheduler import JobScheduler
from supplier_sync.utils.rate_limiter import RateLimiter


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings)


@lru_cache(maxsize=1)
def get_rate_limiter():
    return RateLimiter.from_settings(settings)


@lru_cache(maxsize=1)
def get_supplier_client():
    return SupplierClient(settings, get_rate_limiter())


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_fetch_job_store():
    return FetchJobStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_supplier_product_store():
    return SupplierProductStore(get_supabase_client())


# -- Services --------------------------------------------------------------

@lru_cache(maxsize=1)
def get_fetch_job_executor():
    return FetchJobExecutor(
        get_fetch_job_store(),
        get_supplier_client(),
        get_supplier_product_store(),
        batch_size=settings.supplier_batch_size,
    )


@lru_cache(maxsize=1)
def get_job_scheduler():
    return JobScheduler(
        get_fetch_job_store(),
        get_fetch_job_executor(),
        check_interval_ms=settings.job_check_interval_ms,
        poll_limit=settings.job_poll_limit,
        stuck_threshold_minutes=settings.job_stuck_threshold_minutes,
    )


@lru_cache(maxsize=1)
def get_fetch_job_service():
    return FetchJobService(
        get_fetch_job_store(),
        default_max_retries=settings.job_max_retries,
    )
