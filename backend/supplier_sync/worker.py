"""
Worker — long-running process hosting the job scheduler.

Recovers jobs stranded in 'running' by a previous crash, starts the
scheduler and runs until SIGINT/SIGTERM, then drains the current tick.
"""
import asyncio
import logging
import signal

from supplier_sync.core.config import settings
from supplier_sync.container import get_job_scheduler

logger = logging.getLogger("worker")


async def run_worker() -> None:
    scheduler = get_job_scheduler()

    recovered = scheduler.recover_stuck_jobs(settings.job_stuck_threshold_minutes)
    if recovered:
        logger.info(f"Recovered {recovered} stuck jobs on startup")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C raises instead
            pass

    scheduler.start()
    logger.info("Worker running, press Ctrl+C to stop")

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down worker...")
        await scheduler.stop()
