"""
Daily Summary Job.
Reads the recipient configuration, fetches each shared calendar once, and
mails every recipient a summary of their events, followed by an admin report.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta, tzinfo
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from calendar_digest.config import Settings, settings
from calendar_digest.features.daily_summary.domain.errors import (
    ConfigurationError,
    DailySummaryJobError,
)
from calendar_digest.features.daily_summary.domain.models import OutboundMessage
from calendar_digest.features.daily_summary.pipeline.batching import CalendarBatcher
from calendar_digest.features.daily_summary.pipeline.queue_builder import DeliveryQueueBuilder
from calendar_digest.features.daily_summary.pipeline.recipients import (
    build_column_index,
    expand_recipients,
)
from calendar_digest.features.daily_summary.pipeline.reconciliation import reconcile_results
from calendar_digest.features.daily_summary.pipeline.schedule import filter_by_frequency
from calendar_digest.features.daily_summary.pipeline.templates import SummaryRenderer
from calendar_digest.features.daily_summary.services.config_loader import SheetConfigurationSource
from calendar_digest.features.daily_summary.services.retry import RetryExecutor
from calendar_digest.features.daily_summary.services.sender import BatchSender
from calendar_digest.features.daily_summary.services.tracker import (
    ExecutionTracker,
    RunSummary,
    admin_subject,
    generate_admin_summary,
)
from calendar_digest.infrastructure.observability.logging import get_logger, log_job_run
from calendar_digest.services.calendar.source import CalendarSource, GoogleCalendarSource
from calendar_digest.services.mail.channels import GmailChannel, MailChannel, SmtpChannel

logger = get_logger(__name__)

JOB_NAME = "daily_summary"
JOB_INTERVAL_HOURS = 24


class DailySummaryJob:
    """
    One digest run per call to run_once.

    Collaborators default to the Google and SMTP implementations built from
    settings; tests pass fakes instead.
    """

    def __init__(
        self,
        job_settings: Settings | None = None,
        config_source: SheetConfigurationSource | None = None,
        calendar_source: CalendarSource | None = None,
        primary_channel: MailChannel | None = None,
        fallback_channel: MailChannel | None = None,
        admin_channel: MailChannel | None = None,
        now: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = job_settings or settings
        s = self.settings

        smtp_channel = SmtpChannel(
            host=s.SMTP_HOST,
            port=s.SMTP_PORT,
            username=s.SMTP_USER,
            password=s.SMTP_PASSWORD,
            sender=s.SENDER_EMAIL,
            use_tls=s.SMTP_USE_TLS,
        )

        self.config_source = config_source or SheetConfigurationSource(
            s.SPREADSHEET_ID, s.CONFIG_SHEET_NAME, s.GOOGLE_ACCESS_TOKEN
        )
        self.calendar_source = calendar_source or GoogleCalendarSource(s.GOOGLE_ACCESS_TOKEN)
        self.primary_channel = primary_channel or GmailChannel(s.GOOGLE_ACCESS_TOKEN, s.SENDER_EMAIL)
        self.fallback_channel = fallback_channel or smtp_channel
        self.admin_channel = admin_channel or smtp_channel

        self._now = now
        self._sleep = sleep

        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_summary: dict | None = None

        self._validate_config()

    def _validate_config(self) -> None:
        validation = self.settings.validate_configuration()
        if not validation["valid"]:
            logger.warning("Daily summary job is missing configuration", **validation)

        if not self.settings.ADMIN_EMAIL:
            logger.warning("ADMIN_EMAIL not set, admin reports will not be sent")

        logger.info("Daily summary job configured", **self.settings.masked_summary())

    def execution_timezone(self) -> tzinfo:
        name = self.settings.EXECUTION_TIMEZONE
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise DailySummaryJobError(
                f"Unknown execution timezone '{name}'",
                operation="execution_timezone",
                recoverable=False,
            ) from e

    async def run_once(self) -> dict:
        """
        Run the whole digest once.

        Configuration and unexpected errors are recorded in the run summary
        rather than raised, so the admin report always goes out.

        Returns:
            Dict: Run summary with metrics, quota estimate and run details
        """
        if self.is_running:
            logger.warning("Daily summary job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        self.is_running = True
        run_id = uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(job_run=JOB_NAME, run_id=run_id)

        try:
            tracker = ExecutionTracker()
            messages_queued = 0

            logger.info("Starting daily summary job")

            try:
                messages_queued = await self._run_pipeline(tracker)
            except ConfigurationError as e:
                tracker.add_error(e, "Configuration loading")
                logger.error("Failed to load configuration, stopping run", error=str(e))
            except Exception as e:
                tracker.add_error(e, "Main execution")
                logger.error(
                    "Daily summary job failed", error=str(e), error_type=type(e).__name__
                )

            summary = tracker.get_summary()
            admin_report_sent = await self._send_admin_report(summary)

            result = summary.to_dict()
            result.update(
                {
                    "job_run": JOB_NAME,
                    "run_id": run_id,
                    "messages_queued": messages_queued,
                    "admin_report_sent": admin_report_sent,
                }
            )

            self.last_run_time = datetime.now(UTC)
            self.last_summary = result

            log_job_run(
                JOB_NAME,
                summary.success,
                summary.execution_time_ms,
                calendars_processed=summary.metrics.calendars_processed,
                emails_sent=summary.metrics.emails_sent,
                emails_failed=summary.metrics.emails_failed,
                errors_count=len(summary.metrics.errors),
            )
            return result

        finally:
            self.is_running = False
            structlog.contextvars.unbind_contextvars("job_run", "run_id")

    async def _run_pipeline(self, tracker: ExecutionTracker) -> int:
        """Returns the number of messages queued for delivery."""
        sheet = await self.config_source.load()
        column_index = build_column_index(sheet.headers)

        tz = self.execution_timezone()
        now = self._now() if self._now else datetime.now(tz)

        recipients = expand_recipients(sheet.rows, column_index)
        active = filter_by_frequency(recipients, now.astimezone(tz))
        if not active:
            logger.info("No recipients scheduled for today")
            return 0

        retry = RetryExecutor(tracker, sleep=self._sleep, **self.settings.retry_policy())

        batcher = CalendarBatcher(self.calendar_source, retry, tracker, now=lambda: now, tz=tz)
        results = await batcher.fetch_all(active)

        deliveries = reconcile_results(results)
        queue = DeliveryQueueBuilder(SummaryRenderer(tz)).build(deliveries)

        sender = BatchSender(
            self.primary_channel,
            self.fallback_channel,
            retry,
            tracker,
            sleep=self._sleep,
            **self.settings.batch_policy(),
        )
        await sender.send_all(queue)
        return len(queue)

    async def _send_admin_report(self, summary: RunSummary) -> bool:
        """Best effort: one attempt, failures are logged only."""
        admin_email = self.settings.ADMIN_EMAIL
        if not admin_email:
            logger.warning("Skipping admin report, no ADMIN_EMAIL configured")
            return False

        message = OutboundMessage(
            to=admin_email,
            subject=admin_subject(summary),
            body=generate_admin_summary(summary),
        )
        try:
            await self.admin_channel.send(message)
        except Exception as e:
            logger.error("Failed to send admin summary email", error=str(e))
            return False

        logger.info("Admin summary email sent", success=summary.success)
        return True

    def get_job_status(self) -> dict:
        """
        Get current job status and the last run's summary.

        Returns:
            Dict: Current job status information
        """
        return {
            "job_name": JOB_NAME,
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_hours": JOB_INTERVAL_HOURS,
            "execution_timezone": self.settings.EXECUTION_TIMEZONE,
            "last_run_summary": self.last_summary,
        }

    def health_check(self) -> dict:
        """
        Health check for the daily summary job.

        Returns:
            Dict: Health status and configuration
        """
        now = datetime.now(UTC)

        # Overdue when it has not run in 2x the interval
        overdue_threshold = timedelta(hours=JOB_INTERVAL_HOURS * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold
        last_run_success = self.last_summary.get("success") if self.last_summary else None

        health_status = {
            "healthy": not is_overdue and last_run_success is not False,
            "service": "daily_summary_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
            "last_run_success": last_run_success,
            "configuration": self.settings.validate_configuration(),
        }

        if is_overdue:
            hours = (now - self.last_run_time).total_seconds() / 3600
            health_status["warning"] = f"Job overdue by {hours:.1f} hours"

        return health_status


# Singleton instance for application use
daily_summary_job = DailySummaryJob()


async def run_daily_summary_job() -> dict:
    """Run a single iteration of the daily summary job."""
    return await daily_summary_job.run_once()


def get_daily_summary_job_status() -> dict:
    return daily_summary_job.get_job_status()


def daily_summary_job_health() -> dict:
    return daily_summary_job.health_check()


async def start_daily_summary_scheduler() -> None:
    """Run the job every JOB_INTERVAL_HOURS until cancelled."""
    logger.info("Starting daily summary job scheduler", interval_hours=JOB_INTERVAL_HOURS)

    while True:
        try:
            summary = await run_daily_summary_job()
            if not summary.get("skipped", False):
                logger.info(
                    "Daily summary job cycle completed",
                    success=summary.get("success"),
                    execution_time=summary.get("execution_time_formatted"),
                )
        except Exception as e:
            logger.error(
                "Error in daily summary job scheduler", error=str(e), error_type=type(e).__name__
            )

        await asyncio.sleep(JOB_INTERVAL_HOURS * 3600)
