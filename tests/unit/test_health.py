"""
Tests for health check and job endpoints.
"""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from calendar_digest.main import app

client = TestClient(app)


def _healthy():
    return {"healthy": True, "api_connectivity": "ok"}


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when configuration and Google APIs are fine."""
    with (
        patch("calendar_digest.routes.health.settings.SPREADSHEET_ID", "sheet-id"),
        patch(
            "calendar_digest.routes.health.google_sheets_service.health_check",
            AsyncMock(return_value=_healthy()),
        ),
        patch(
            "calendar_digest.routes.health.google_calendar_service.health_check",
            AsyncMock(return_value=_healthy()),
        ),
        patch(
            "calendar_digest.routes.health.google_gmail_service.health_check",
            MagicMock(return_value=_healthy()),
        ),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    checks = data["checks"]
    assert checks["configuration"]["ok"] is True
    assert checks["google_sheets"]["ok"] is True
    assert checks["google_calendar"]["ok"] is True
    assert checks["google_gmail"]["ok"] is True


def test_readyz_endpoint_missing_configuration():
    """Test readiness endpoint when the spreadsheet id is not configured."""
    with (
        patch("calendar_digest.routes.health.settings.SPREADSHEET_ID", None),
        patch(
            "calendar_digest.routes.health.google_sheets_service.health_check",
            AsyncMock(return_value=_healthy()),
        ),
        patch(
            "calendar_digest.routes.health.google_calendar_service.health_check",
            AsyncMock(return_value=_healthy()),
        ),
        patch(
            "calendar_digest.routes.health.google_gmail_service.health_check",
            MagicMock(return_value=_healthy()),
        ),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["configuration"]["issues"] == ["SPREADSHEET_ID"]


def test_readyz_endpoint_calendar_unreachable():
    """Test readiness endpoint when the Calendar API check raises."""
    with (
        patch("calendar_digest.routes.health.settings.SPREADSHEET_ID", "sheet-id"),
        patch(
            "calendar_digest.routes.health.google_sheets_service.health_check",
            AsyncMock(return_value=_healthy()),
        ),
        patch(
            "calendar_digest.routes.health.google_calendar_service.health_check",
            AsyncMock(side_effect=RuntimeError("boom")),
        ),
        patch(
            "calendar_digest.routes.health.google_gmail_service.health_check",
            MagicMock(return_value=_healthy()),
        ),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["google_calendar"]["ok"] is False
    assert "boom" in data["checks"]["google_calendar"]["error"]


def test_run_daily_summary_endpoint():
    summary = {"success": True, "job_run": "daily_summary"}
    with patch(
        "calendar_digest.features.daily_summary.api.router.run_daily_summary_job",
        AsyncMock(return_value=summary),
    ):
        response = client.post("/jobs/daily-summary/run")

    assert response.status_code == 200
    assert response.json() == summary


def test_daily_summary_status_endpoint():
    response = client.get("/jobs/daily-summary/status")

    assert response.status_code == 200
    data = response.json()
    assert data["job_name"] == "daily_summary"
    assert "is_running" in data
