"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the matching job. `daily_summary` runs the digest
once and exits (for cron); `daily_summary_scheduler` keeps running it daily.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from calendar_digest.config import settings
from calendar_digest.infrastructure.observability.logging import get_logger, setup_logging
from calendar_digest.jobs.daily_summary_job import (
    run_daily_summary_job,
    start_daily_summary_scheduler,
)
from calendar_digest.services.calendar.google_client import google_calendar_service
from calendar_digest.services.sheets.google_client import google_sheets_service

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[object]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "daily_summary": run_daily_summary_job,
    "daily_summary_scheduler": start_daily_summary_scheduler,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "daily_summary").strip().lower()


async def _close_clients() -> None:
    """Close the shared HTTP clients before the event loop goes away."""
    for name, service in (
        ("google_sheets", google_sheets_service),
        ("google_calendar", google_calendar_service),
    ):
        try:
            await service.close()
        except Exception as e:
            logger.error("Error closing HTTP client", service=name, error=str(e))


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    try:
        await JOB_REGISTRY[name]()
    finally:
        await _close_clients()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
