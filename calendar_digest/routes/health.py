"""
Health check endpoints.
"""

import time

from fastapi import APIRouter

from calendar_digest.config import settings
from calendar_digest.services.calendar.google_client import google_calendar_service
from calendar_digest.services.gmail.google_client import google_gmail_service
from calendar_digest.services.sheets.google_client import google_sheets_service

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "calendar-digest"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: required configuration plus Google API reachability.
    """
    checks = {}
    overall_ok = True

    # 1) Configuration
    validation = settings.validate_configuration()
    checks["configuration"] = {
        "ok": validation["valid"],
        "issues": validation["missing"] or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and validation["valid"]

    # 2) Google APIs
    for name, check in (
        ("google_sheets", google_sheets_service.health_check),
        ("google_calendar", google_calendar_service.health_check),
    ):
        t0 = time.time()
        try:
            health = await check()
            checks[name] = {
                "ok": health.get("healthy", False),
                "api_connectivity": health.get("api_connectivity"),
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
        except Exception as e:
            checks[name] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = overall_ok and checks[name]["ok"]

    # Gmail client is synchronous (requests)
    t0 = time.time()
    try:
        gmail_health = google_gmail_service.health_check()
        checks["google_gmail"] = {
            "ok": gmail_health.get("healthy", False),
            "api_connectivity": gmail_health.get("api_connectivity"),
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
    except Exception as e:
        checks["google_gmail"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
    overall_ok = overall_ok and checks["google_gmail"]["ok"]

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
