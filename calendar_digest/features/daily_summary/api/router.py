"""
Daily summary job routes.

Lets operators trigger a run on demand and inspect the last run without
shelling into the worker.
"""

from fastapi import APIRouter

from calendar_digest.jobs.daily_summary_job import (
    daily_summary_job_health,
    get_daily_summary_job_status,
    run_daily_summary_job,
)

router = APIRouter(prefix="/jobs/daily-summary", tags=["daily-summary"])


@router.post("/run")
async def run_daily_summary() -> dict:
    """Run the digest once and return its summary."""
    return await run_daily_summary_job()


@router.get("/status")
async def daily_summary_status() -> dict:
    return get_daily_summary_job_status()


@router.get("/health")
async def daily_summary_health() -> dict:
    return daily_summary_job_health()
