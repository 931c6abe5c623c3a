"""
Execution tracking for one digest run.

ExecutionTracker is created by the job at the start of a run and passed by
reference into every stage. The run is sequential, so plain increments are
enough.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from calendar_digest.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class ErrorRecord:
    message: str
    context: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True)
class RunMetrics:
    calendars_processed: int = 0
    events_found: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    retries_performed: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "calendars_processed": self.calendars_processed,
            "events_found": self.events_found,
            "emails_sent": self.emails_sent,
            "emails_failed": self.emails_failed,
            "retries_performed": self.retries_performed,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True, slots=True)
class QuotaUsage:
    calendar_reads: int
    email_sends: int
    sheet_reads: int

    @property
    def total_api_calls(self) -> int:
        return self.calendar_reads + self.email_sends + self.sheet_reads

    def to_dict(self) -> dict:
        return {
            "calendar_reads": self.calendar_reads,
            "email_sends": self.email_sends,
            "sheet_reads": self.sheet_reads,
            "total_api_calls": self.total_api_calls,
        }


@dataclass(frozen=True, slots=True)
class RunSummary:
    execution_time_ms: int
    execution_time_formatted: str
    metrics: RunMetrics
    quota_usage: QuotaUsage
    success: bool

    def to_dict(self) -> dict:
        return {
            "execution_time_ms": self.execution_time_ms,
            "execution_time_formatted": self.execution_time_formatted,
            "metrics": self.metrics.to_dict(),
            "quota_usage": self.quota_usage.to_dict(),
            "success": self.success,
        }


def format_duration(ms: float) -> str:
    """1000 -> '1s', 90000 -> '1m 30s'."""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


class ExecutionTracker:
    """Counters, error log and timing for a single run."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started = clock()
        self.started_at = datetime.now(UTC)
        self.metrics = RunMetrics()

    def increment_calendars(self) -> None:
        self.metrics.calendars_processed += 1

    def add_events(self, count: int) -> None:
        self.metrics.events_found += count

    def increment_emails_sent(self) -> None:
        self.metrics.emails_sent += 1

    def increment_emails_failed(self) -> None:
        self.metrics.emails_failed += 1

    def increment_retries(self) -> None:
        self.metrics.retries_performed += 1

    def add_error(self, error: BaseException | str, context: str = "") -> None:
        message = str(error)
        self.metrics.errors.append(
            ErrorRecord(message=message, context=context, timestamp=datetime.now(UTC))
        )
        logger.debug("Run error recorded", context=context, error=message)

    def get_execution_time_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    def get_quota_usage_estimate(self) -> QuotaUsage:
        return QuotaUsage(
            calendar_reads=self.metrics.calendars_processed * 2,  # calendar + events
            email_sends=self.metrics.emails_sent + self.metrics.emails_failed,
            sheet_reads=1,
        )

    def get_summary(self) -> RunSummary:
        elapsed = self.get_execution_time_ms()
        return RunSummary(
            execution_time_ms=elapsed,
            execution_time_formatted=format_duration(elapsed),
            metrics=self.metrics,
            quota_usage=self.get_quota_usage_estimate(),
            success=not self.metrics.errors and self.metrics.emails_failed == 0,
        )


def generate_admin_summary(summary: RunSummary) -> str:
    """Plain-text run report for the administrator."""
    metrics = summary.metrics
    quota = summary.quota_usage

    lines = [
        "Daily Calendar Summary - Execution Report",
        "",
        f"Status: {'SUCCESS' if summary.success else 'FAILED'}",
        f"Execution Time: {summary.execution_time_formatted}",
        "",
        "METRICS:",
        f"• Calendars Processed: {metrics.calendars_processed}",
        f"• Events Found: {metrics.events_found}",
        f"• Emails Sent: {metrics.emails_sent}",
        f"• Email Failures: {metrics.emails_failed}",
        f"• Retries Performed: {metrics.retries_performed}",
        "",
        "QUOTA USAGE ESTIMATE:",
        f"• Calendar API Reads: {quota.calendar_reads}",
        f"• Email Sends: {quota.email_sends}",
        f"• Sheet Reads: {quota.sheet_reads}",
        f"• Total API Calls: {quota.total_api_calls}",
        "",
    ]

    if metrics.errors:
        lines.append(f"ERRORS ({len(metrics.errors)}):")
        for number, error in enumerate(metrics.errors, start=1):
            lines.append(f"{number}. [{error.context}] {error.message}")
        lines.append("")

    lines.append("Generated by the calendar digest job")
    return "\n".join(lines)


def admin_subject(summary: RunSummary) -> str:
    return f"Calendar Summary Report - {'SUCCESS' if summary.success else 'FAILED'}"
