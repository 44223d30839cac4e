"""
Supplier Sync command line.

Usage:
    # Run the scheduler worker
    supplier-sync run

    # Queue a fetch of all categories (or a subset)
    supplier-sync create-job
    supplier-sync create-job --categories tire rim --max-retries 3

    # Inspect and manage jobs
    supplier-sync status [JOB_ID]
    supplier-sync history --limit 20
    supplier-sync cancel JOB_ID
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from supplier_sync.core.config import settings
from supplier_sync.core.constants.jobs import PRODUCT_CATEGORIES
from supplier_sync.core.exceptions import SupplierSyncException

logger = logging.getLogger("cli")


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _cmd_run(args: argparse.Namespace) -> int:
    from supplier_sync.worker import run_worker

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        pass
    return 0


def _cmd_create_job(args: argparse.Namespace) -> int:
    from supplier_sync.container import get_fetch_job_service

    job = get_fetch_job_service().create_job(
        categories=args.categories,
        triggered_by="manual",
        max_retries=args.max_retries,
    )
    _print({"job_id": job.id, "status": job.status.value, "categories": job.categories})
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    from supplier_sync.container import get_fetch_job_service

    service = get_fetch_job_service()
    if args.job_id is None:
        progress = service.get_active_job()
        if progress is None:
            _print({"active_job": None})
            return 0
    else:
        progress = service.get_job_progress(args.job_id)
    _print(progress.model_dump(mode="json"))
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    from supplier_sync.container import get_fetch_job_service

    jobs = get_fetch_job_service().get_job_history(limit=args.limit)
    _print([job.model_dump(mode="json") for job in jobs])
    return 0


def _cmd_cancel(args: argparse.Namespace) -> int:
    from supplier_sync.container import get_fetch_job_service

    job = get_fetch_job_service().cancel_job(args.job_id)
    _print({"job_id": job.id, "status": job.status.value})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supplier-sync",
        description="Cost-limited supplier product ingestion with a retrying job scheduler",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default: LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the job scheduler until interrupted")
    run.set_defaults(func=_cmd_run)

    create = subparsers.add_parser("create-job", help="Queue a new fetch job")
    create.add_argument(
        "--categories", nargs="+", choices=PRODUCT_CATEGORIES, default=None,
        help="Categories to fetch, in order (default: all)",
    )
    create.add_argument("--max-retries", type=int, default=None, help="Retry budget for the job")
    create.set_defaults(func=_cmd_create_job)

    status = subparsers.add_parser("status", help="Show a job's progress (default: the active job)")
    status.add_argument("job_id", type=int, nargs="?", default=None)
    status.set_defaults(func=_cmd_status)

    history = subparsers.add_parser("history", help="List recent jobs")
    history.add_argument("--limit", type=int, default=10)
    history.set_defaults(func=_cmd_history)

    cancel = subparsers.add_parser("cancel", help="Cancel a job that has not finished")
    cancel.add_argument("job_id", type=int)
    cancel.set_defaults(func=_cmd_cancel)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )

    try:
        return args.func(args)
    except SupplierSyncException as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
