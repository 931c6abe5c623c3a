from datetime import UTC, datetime, timedelta

import pytest

from calendar_digest.config import Settings
from calendar_digest.features.daily_summary.domain.errors import ConfigurationError
from calendar_digest.jobs.daily_summary_job import DailySummaryJob


class FailingConfigSource:
    def __init__(self, error: Exception):
        self.error = error

    async def load(self):
        raise self.error


@pytest.fixture
def job_settings():
    return Settings(
        _env_file=None,
        SPREADSHEET_ID="sheet-id",
        ADMIN_EMAIL="admin@example.com",
        EXECUTION_TIMEZONE="UTC",
    )


@pytest.fixture
def make_job(job_settings, channel_factory, calendar_source_factory, instant_sleep, fixed_now):
    def _make(config_source, calendars=None, **overrides):
        kwargs = {
            "job_settings": job_settings,
            "config_source": config_source,
            "calendar_source": calendar_source_factory(calendars or {}),
            "primary_channel": channel_factory("primary"),
            "fallback_channel": channel_factory("fallback"),
            "admin_channel": channel_factory("admin"),
            "now": lambda: fixed_now,
            "sleep": instant_sleep,
        }
        kwargs.update(overrides)
        return DailySummaryJob(**kwargs)

    return _make


@pytest.mark.asyncio
async def test_run_once_sends_summaries_and_admin_report(
    make_job, config_source_factory, config_headers, events
):
    config = config_source_factory(
        config_headers,
        [
            ["john@example.com", "john.calendar@gmail.com", "", "", "today", "daily", "active", ""],
            ["jane@example.com", "jane.calendar@gmail.com", "", "24h", "", "", "", "important"],
        ],
    )
    job = make_job(
        config,
        {
            "john.calendar@gmail.com": ("John Work Calendar", events[:3]),
            "jane.calendar@gmail.com": ("Jane Calendar", events),
        },
    )

    result = await job.run_once()

    assert result["success"] is True
    assert result["messages_queued"] == 2
    assert result["admin_report_sent"] is True
    assert result["metrics"]["emails_sent"] == 2
    assert result["metrics"]["calendars_processed"] == 2
    assert result["metrics"]["events_found"] == 12

    sent = {m.to: m for m in job.primary_channel.sent}
    assert "Lunch with Client" in sent["jane@example.com"].body
    assert "Daily Standup" not in sent["jane@example.com"].body

    (report,) = job.admin_channel.sent
    assert report.to == "admin@example.com"
    assert report.subject == "Calendar Summary Report - SUCCESS"
    assert "• Emails Sent: 2" in report.body
    assert job.last_run_time is not None
    assert job.is_running is False


@pytest.mark.asyncio
async def test_configuration_error_still_reports(make_job):
    job = make_job(FailingConfigSource(ConfigurationError("No recipient configurations found")))

    result = await job.run_once()

    assert result["success"] is False
    assert result["messages_queued"] == 0
    assert result["metrics"]["errors"][0]["context"] == "Configuration loading"
    assert job.primary_channel.attempts == []
    (report,) = job.admin_channel.sent
    assert report.subject == "Calendar Summary Report - FAILED"
    assert "[Configuration loading] No recipient configurations found" in report.body


@pytest.mark.asyncio
async def test_missing_columns_are_configuration_errors(make_job, config_source_factory):
    job = make_job(config_source_factory(["Recipient Email"], [["a@example.com"]]))

    result = await job.run_once()

    assert result["metrics"]["errors"][0]["context"] == "Configuration loading"
    assert "Calendar ID" in result["metrics"]["errors"][0]["message"]


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded(make_job):
    job = make_job(FailingConfigSource(RuntimeError("sheet exploded")))

    result = await job.run_once()

    assert result["success"] is False
    assert result["metrics"]["errors"][0] == {
        "message": "sheet exploded",
        "context": "Main execution",
        "timestamp": result["metrics"]["errors"][0]["timestamp"],
    }
    assert len(job.admin_channel.sent) == 1


@pytest.mark.asyncio
async def test_admin_report_failure_is_not_raised(make_job, channel_factory):
    admin = channel_factory("admin", fail_for={"admin@example.com"})
    job = make_job(FailingConfigSource(RuntimeError("boom")), admin_channel=admin)

    result = await job.run_once()

    assert result["admin_report_sent"] is False
    # Best effort: a single attempt, no retries
    assert admin.attempts == ["admin@example.com"]


@pytest.mark.asyncio
async def test_no_admin_email_skips_report(make_job, job_settings):
    job_settings.ADMIN_EMAIL = None
    job = make_job(FailingConfigSource(RuntimeError("boom")))

    result = await job.run_once()

    assert result["admin_report_sent"] is False
    assert job.admin_channel.attempts == []


@pytest.mark.asyncio
async def test_unknown_execution_timezone_fails_run(make_job, config_source_factory, config_headers, job_settings):
    job_settings.EXECUTION_TIMEZONE = "Nowhere/Special"
    job = make_job(
        config_source_factory(config_headers, [["a@example.com", "a@example.com"]])
    )

    result = await job.run_once()

    assert result["success"] is False
    assert "Nowhere/Special" in result["metrics"]["errors"][0]["message"]


@pytest.mark.asyncio
async def test_overlapping_run_is_skipped(make_job, config_source_factory, config_headers):
    job = make_job(config_source_factory(config_headers, []))
    job.is_running = True

    result = await job.run_once()

    assert result == {"skipped": True, "reason": "already_running"}


@pytest.mark.asyncio
async def test_status_and_health(make_job, config_source_factory, config_headers):
    job = make_job(config_source_factory(config_headers, []))

    status = job.get_job_status()
    assert status["job_name"] == "daily_summary"
    assert status["last_run_time"] is None
    assert job.health_check()["healthy"] is True

    await job.run_once()

    assert job.get_job_status()["last_run_summary"]["job_run"] == "daily_summary"

    job.last_run_time = datetime.now(UTC) - timedelta(days=3)
    health = job.health_check()
    assert health["is_overdue"] is True
    assert health["healthy"] is False
    assert "overdue" in health["warning"]
