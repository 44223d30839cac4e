"""
Fetch job executor — runs one attempt of a fetch job.

Resumes at the job's category cursor and pages through each remaining
category, persisting products and checkpointing the category cursor as it
goes. The attempt's result is returned as a JobOutcome; the executor never
writes the job record's status, the scheduler does that from the outcome.
Version: 1.0.0
"""
import logging
from typing import Dict, Optional

from supplier_sync.clients.supplier_client import SupplierClient
from supplier_sync.core.constants.jobs import CANCELLED_MESSAGE
from supplier_sync.core.exceptions import (
    JobNotFoundError,
    NonRetryableError,
    RateLimitError,
    RetryableError,
)
from supplier_sync.db.fetch_job_store import FetchJobStore
from supplier_sync.db.supplier_product_store import SupplierProductStore
from supplier_sync.schemas.jobs import FetchJob, JobStatus
from supplier_sync.schemas.outcomes import (
    Failure,
    JobOutcome,
    ProgressDelta,
    RateLimited,
    Success,
)

logger = logging.getLogger("fetch_job_executor")


def _counters(job: FetchJob, progress: ProgressDelta, categories_completed: int) -> Dict[str, int]:
    """Absolute counter columns of a job after adding this attempt's progress."""
    return {
        "completed_categories": job.completed_categories + categories_completed,
        "products_fetched": job.products_fetched + progress.fetched,
        "products_created": job.products_created + progress.created,
        "products_updated": job.products_updated + progress.updated,
        "products_unchanged": job.products_unchanged + progress.unchanged,
    }


class FetchJobExecutor:
    def __init__(
        self,
        job_store: FetchJobStore,
        supplier_client: SupplierClient,
        product_store: SupplierProductStore,
        batch_size: int = 100,
    ) -> None:
        self._job_store = job_store
        self._client = supplier_client
        self._product_store = product_store
        self._batch_size = batch_size

    async def execute(self, job_id: int) -> JobOutcome:
        """
        Run the remaining categories of a job.

        Each finished category is checkpointed on the job record (cursor and
        counters), so a crash mid-attempt resumes after the last finished
        category. The returned outcome carries only progress that was not
        checkpointed. A category interrupted by an error is fetched again on
        the next attempt.
        """
        progress = ProgressDelta()
        completed = 0
        category: Optional[str] = None

        try:
            job = self._job_store.get_job(job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            saved = ProgressDelta()
            saved_completed = 0
            remaining = job.categories[job.completed_categories:]
            logger.info(f"Executing job {job_id}: remaining categories={remaining}")

            for category in remaining:
                if self._job_store.get_status(job_id) == JobStatus.CANCELLED:
                    logger.info(f"Job {job_id} cancelled, stopping before {category}")
                    return Failure(
                        message=CANCELLED_MESSAGE,
                        progress=progress,
                        categories_completed=completed,
                    )

                self._job_store.touch_activity(job_id, category)
                progress = progress + await self._fetch_category(job_id, category)
                completed += 1

                if self._job_store.save_progress(
                    job_id, _counters(job, saved + progress, saved_completed + completed),
                ):
                    saved = saved + progress
                    saved_completed += completed
                    progress = ProgressDelta()
                    completed = 0

            return Success(progress=progress, categories_completed=completed)

        except RateLimitError as e:
            logger.warning(f"Job {job_id} rate limited on {category}: retry after {e.retry_after}s")
            return RateLimited(
                wait_seconds=max(1, e.retry_after),
                category=category,
                progress=progress,
                categories_completed=completed,
            )
        except RetryableError as e:
            logger.warning(f"Job {job_id} transient failure on {category}: {e}")
            return Failure(
                message=str(e),
                retryable=True,
                progress=progress,
                categories_completed=completed,
            )
        except NonRetryableError as e:
            logger.error(f"Job {job_id} permanent failure on {category}: {e}")
            return Failure(
                message=str(e),
                progress=progress,
                categories_completed=completed,
            )

    async def _fetch_category(self, job_id: int, category: str) -> ProgressDelta:
        delta = ProgressDelta()
        page = 1

        while True:
            result = await self._client.get_products(category, page=page, limit=self._batch_size)
            if result.products:
                counts = await self._product_store.upsert_products(result.products, job_id, category)
                delta = delta + ProgressDelta(
                    fetched=len(result.products),
                    created=counts.created,
                    updated=counts.updated,
                    unchanged=counts.unchanged,
                )
            if not result.has_more or not result.products:
                break
            page += 1

        logger.info(
            f"Job {job_id} finished {category}: fetched={delta.fetched} "
            f"created={delta.created} updated={delta.updated} unchanged={delta.unchanged}"
        )
        return delta
