import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


class Settings(BaseModel):
    # Supabase
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_service_role_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Supplier API
    supplier_api_url: str | None = os.getenv("SUPPLIER_API_URL")
    supplier_customer_id: str | None = os.getenv("SUPPLIER_CUSTOMER_ID")
    supplier_api_key: str | None = os.getenv("SUPPLIER_API_KEY")
    # Supplier-side category ids for each product category
    supplier_category_ids: dict[str, Optional[str]] = {
        "tire": os.getenv("CATEGORY_ID_TIRE"),
        "rim": os.getenv("CATEGORY_ID_RIM"),
        "battery": os.getenv("CATEGORY_ID_BATTERY"),
    }
    supplier_batch_size: int = int(os.getenv("SUPPLIER_BATCH_SIZE", "100"))
    supplier_http_timeout: float = float(os.getenv("SUPPLIER_HTTP_TIMEOUT", "30"))
    supplier_default_retry_after: int = int(os.getenv("SUPPLIER_DEFAULT_RETRY_AFTER", "60"))
    supplier_transport_retries: int = int(os.getenv("SUPPLIER_TRANSPORT_RETRIES", "2"))

    # Cost-based rate limit
    rate_limit_max_cost: float = float(os.getenv("RATE_LIMIT_MAX_COST", "2000"))
    rate_limit_restore_rate: float = float(os.getenv("RATE_LIMIT_RESTORE_RATE", "100"))
    rate_limit_safety_margin: float = float(os.getenv("RATE_LIMIT_SAFETY_MARGIN", "100"))

    # Job scheduler
    job_check_interval_ms: int = int(os.getenv("JOB_CHECK_INTERVAL_MS", "30000"))
    job_max_retries: int = int(os.getenv("JOB_MAX_RETRIES", "5"))
    job_stuck_threshold_minutes: int = int(os.getenv("JOB_STUCK_THRESHOLD_MINUTES", "30"))
    job_poll_limit: int = int(os.getenv("JOB_POLL_LIMIT", "50"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
