"""
Retry helpers — Retry-After parsing and the job backoff schedule.

Short transport hiccups inside one upstream call are retried with tenacity
in the supplier client. Anything longer lived is surfaced to the scheduler
as a job outcome and retried on a later tick instead.
"""
import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx

from supplier_sync.core.constants.jobs import (
    TRANSIENT_BACKOFF_BASE_SECONDS,
    TRANSIENT_BACKOFF_MAX_SECONDS,
)

_WAIT_SECONDS_PATTERN = re.compile(r"(\d+)\s*(?:seconds?|s)\b", re.IGNORECASE)


def extract_retry_after(response: httpx.Response) -> Optional[int]:
    """
    Read the Retry-After header as whole seconds (rounded up).

    Supports both delta-seconds and HTTP-date forms.
    """
    value = response.headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(0, math.ceil(delta))


def extract_wait_seconds(message: str) -> Optional[int]:
    """Find a "60 seconds" / "60s" style hint in an error message."""
    match = _WAIT_SECONDS_PATTERN.search(message or "")
    if match:
        return int(match.group(1))
    return None


def calculate_backoff_seconds(
    attempt: int,
    base_seconds: int = TRANSIENT_BACKOFF_BASE_SECONDS,
    max_seconds: int = TRANSIENT_BACKOFF_MAX_SECONDS,
) -> int:
    """Seconds until the next job attempt after a transient failure (exponential, capped)."""
    seconds = base_seconds * (2 ** max(0, attempt - 1))
    return min(seconds, max_seconds)
